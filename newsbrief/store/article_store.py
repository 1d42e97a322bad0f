"""
Article and briefing persistence (SQLAlchemy, SQLite by default).

Stage queries select by "field IS NULL" predicates, so re-running a stage is a
no-op for rows it already filled. Every update touches only the fields its
stage computes.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from newsbrief.models import Article, ArticleCategory, Briefing, FeedProfile

logger = logging.getLogger(__name__)

_TS_FORMAT = "%Y-%m-%d %H:%M:%S"

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS articles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT UNIQUE NOT NULL,
        title TEXT NOT NULL,
        published_date TEXT NOT NULL,
        feed_source TEXT NOT NULL,
        raw_content TEXT NOT NULL,
        processed_content TEXT,
        embedding TEXT,
        impact_rating INTEGER,
        feed_profile TEXT NOT NULL,
        image_url TEXT,
        categories TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS briefings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        content TEXT NOT NULL,
        article_ids TEXT NOT NULL,
        feed_profile TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
)


class StoreError(RuntimeError):
    """The store could not be queried or written (fatal for a stage run)."""


def _to_db_ts(value: datetime) -> str:
    """Serialize to a sortable UTC string; naive datetimes are taken as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(_TS_FORMAT)


def _from_db_ts(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.strptime(str(value)[:19], _TS_FORMAT)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _row_to_article(row: dict[str, Any]) -> Article:
    embedding = json.loads(row["embedding"]) if row.get("embedding") else None
    categories = None
    if row.get("categories"):
        categories = [ArticleCategory(c) for c in json.loads(row["categories"])]
    return Article(
        id=row["id"],
        url=row["url"],
        title=row["title"],
        raw_content=row["raw_content"],
        feed_profile=FeedProfile(row["feed_profile"]),
        published_date=_from_db_ts(row["published_date"]),
        feed_source=row["feed_source"],
        processed_content=row.get("processed_content"),
        embedding=embedding,
        impact_rating=row.get("impact_rating"),
        categories=categories,
        image_url=row.get("image_url"),
        created_at=_from_db_ts(row.get("created_at")),
    )


def create_db_engine(database_url: str) -> Engine:
    """Create the engine and make sure both tables exist."""
    engine = create_engine(database_url)
    try:
        with engine.begin() as conn:
            for statement in SCHEMA:
                conn.execute(text(statement))
    except SQLAlchemyError as exc:
        raise StoreError(f"Could not initialize database {database_url}: {exc}") from exc
    logger.info("[STORE] Connected to database: %s", engine.url.render_as_string(hide_password=True))
    return engine


class ArticleStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    def _select(self, where: str, params: dict[str, Any], order_by: str = "",
                limit: int | None = None) -> list[Article]:
        sql = f"SELECT * FROM articles WHERE {where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        if limit is not None:
            sql += " LIMIT :limit"
            params = {**params, "limit": limit}
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(text(sql), params).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Article query failed: {exc}") from exc
        return [_row_to_article(dict(row)) for row in rows]

    def _update(self, sql: str, params: dict[str, Any]) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(text(sql), params)
        except SQLAlchemyError as exc:
            raise StoreError(f"Article update failed: {exc}") from exc

    def insert_article(self, article: Article) -> int | None:
        """Insert a raw article. Returns the new id, or None when the URL is already stored."""
        params = {
            "url": article.url,
            "title": article.title,
            "published_date": _to_db_ts(article.published_date),
            "feed_source": article.feed_source,
            "raw_content": article.raw_content,
            "feed_profile": FeedProfile(article.feed_profile).value,
            "image_url": article.image_url,
            "created_at": _to_db_ts(article.created_at or _utcnow()),
        }
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    text(
                        """
                        INSERT INTO articles (
                            url, title, published_date, feed_source, raw_content,
                            feed_profile, image_url, created_at
                        ) VALUES (
                            :url, :title, :published_date, :feed_source, :raw_content,
                            :feed_profile, :image_url, :created_at
                        )
                        """
                    ),
                    params,
                )
                return int(result.lastrowid)
        except IntegrityError:
            logger.debug("[STORE] Article already stored: %s", article.url)
            return None
        except SQLAlchemyError as exc:
            raise StoreError(f"Article insert failed: {exc}") from exc

    def get_article(self, article_id: int) -> Article | None:
        articles = self._select("id = :id", {"id": article_id})
        return articles[0] if articles else None

    def get_unprocessed(self, profile: FeedProfile, limit: int = 1000) -> list[Article]:
        return self._select(
            "feed_profile = :profile AND processed_content IS NULL",
            {"profile": FeedProfile(profile).value},
            order_by="published_date DESC",
            limit=limit,
        )

    def get_unrated(self, profile: FeedProfile, limit: int = 1000) -> list[Article]:
        return self._select(
            "feed_profile = :profile AND processed_content IS NOT NULL AND impact_rating IS NULL",
            {"profile": FeedProfile(profile).value},
            order_by="published_date DESC",
            limit=limit,
        )

    def get_uncategorized(self, profile: FeedProfile, limit: int = 1000) -> list[Article]:
        return self._select(
            "feed_profile = :profile AND processed_content IS NOT NULL AND categories IS NULL",
            {"profile": FeedProfile(profile).value},
            order_by="published_date DESC",
            limit=limit,
        )

    def get_for_briefing(self, lookback_hours: int, profile: FeedProfile,
                         now: datetime | None = None) -> list[Article]:
        """Processed + embedded articles inside the lookback window, best rated and newest first."""
        cutoff = (now or _utcnow()) - timedelta(hours=lookback_hours)
        return self._select(
            "feed_profile = :profile AND processed_content IS NOT NULL "
            "AND embedding IS NOT NULL AND published_date >= :cutoff",
            {"profile": FeedProfile(profile).value, "cutoff": _to_db_ts(cutoff)},
            order_by="impact_rating DESC, published_date DESC",
        )

    def update_processing(self, article_id: int, processed_content: str,
                          embedding: list[float]) -> None:
        """Persist summary and embedding in one statement; never one without the other."""
        if not processed_content or not embedding:
            raise ValueError("processed_content and embedding must both be set")
        self._update(
            "UPDATE articles SET processed_content = :content, embedding = :embedding WHERE id = :id",
            {"id": article_id, "content": processed_content, "embedding": json.dumps(embedding)},
        )

    def update_rating(self, article_id: int, rating: int) -> None:
        self._update(
            "UPDATE articles SET impact_rating = :rating WHERE id = :id",
            {"id": article_id, "rating": rating},
        )

    def update_categories(self, article_id: int, categories: list[ArticleCategory]) -> None:
        if not categories:
            raise ValueError("categories must be a non-empty list")
        values = [ArticleCategory(c).value for c in categories]
        self._update(
            "UPDATE articles SET categories = :categories WHERE id = :id",
            {"id": article_id, "categories": json.dumps(values)},
        )

    def processing_stats(self, profile: FeedProfile | None = None) -> dict[str, Any]:
        """Counts of total / processed / rated / unprocessed / unrated rows plus average rating."""
        where = "WHERE feed_profile = :profile" if profile else ""
        params = {"profile": FeedProfile(profile).value} if profile else {}
        sql = f"""
            SELECT
                COUNT(*) AS total,
                COUNT(processed_content) AS processed,
                COUNT(impact_rating) AS rated,
                AVG(impact_rating) AS average_rating
            FROM articles {where}
        """
        try:
            with self.engine.connect() as conn:
                row = conn.execute(text(sql), params).mappings().one()
        except SQLAlchemyError as exc:
            raise StoreError(f"Stats query failed: {exc}") from exc

        total = int(row["total"] or 0)
        processed = int(row["processed"] or 0)
        rated = int(row["rated"] or 0)
        average = row["average_rating"]
        return {
            "total": total,
            "processed": processed,
            "rated": rated,
            "unprocessed": total - processed,
            "unrated": processed - rated,
            "average_rating": round(float(average), 2) if average is not None else None,
        }


class BriefingStore:
    """Append-only briefing persistence."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def save(self, content: str, article_ids: list[int], profile: FeedProfile) -> int:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    text(
                        """
                        INSERT INTO briefings (content, article_ids, feed_profile, created_at)
                        VALUES (:content, :article_ids, :feed_profile, :created_at)
                        """
                    ),
                    {
                        "content": content,
                        "article_ids": json.dumps(list(article_ids)),
                        "feed_profile": FeedProfile(profile).value,
                        "created_at": _to_db_ts(_utcnow()),
                    },
                )
                briefing_id = int(result.lastrowid)
        except SQLAlchemyError as exc:
            raise StoreError(f"Briefing insert failed: {exc}") from exc
        logger.info("[STORE] Saved briefing %s (%s articles)", briefing_id, len(article_ids))
        return briefing_id

    def _rows(self, sql: str, params: dict[str, Any]) -> list[Briefing]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(text(sql), params).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Briefing query failed: {exc}") from exc
        return [
            Briefing(
                id=row["id"],
                content=row["content"],
                article_ids=json.loads(row["article_ids"]),
                feed_profile=FeedProfile(row["feed_profile"]),
                created_at=_from_db_ts(row["created_at"]),
            )
            for row in rows
        ]

    def get_briefing(self, briefing_id: int) -> Briefing | None:
        found = self._rows("SELECT * FROM briefings WHERE id = :id", {"id": briefing_id})
        return found[0] if found else None

    def list_briefings(self, profile: FeedProfile | None = None) -> list[Briefing]:
        if profile:
            return self._rows(
                "SELECT * FROM briefings WHERE feed_profile = :profile ORDER BY id DESC",
                {"profile": FeedProfile(profile).value},
            )
        return self._rows("SELECT * FROM briefings ORDER BY id DESC", {})
