"""Topic clustering of article embeddings (k-means)."""

import logging

import numpy as np
from sklearn.cluster import KMeans

logger = logging.getLogger(__name__)

MIN_MEMBERS_PER_CLUSTER = 2


def effective_cluster_count(n_items: int, requested: int) -> int:
    """Cap k so clusters average at least two members: min(requested, n // 2)."""
    return min(requested, n_items // MIN_MEMBERS_PER_CLUSTER)


def cluster_embeddings(embeddings: list[list[float]], k: int,
                       random_state: int | None = None) -> list[int]:
    """
    Assign one label in [0, k_eff) to each embedding.

    Degenerate inputs (fewer than two vectors, or an effective k below two)
    and any failure inside k-means fall back to a single cluster (all zeros).
    """
    n_items = len(embeddings)
    if n_items < 2:
        return [0] * n_items

    k_eff = effective_cluster_count(n_items, k)
    if k_eff < 2:
        return [0] * n_items

    try:
        vectors = np.asarray(embeddings, dtype="float64")
        if vectors.ndim != 2:
            raise ValueError(f"embeddings must share one dimensionality, got shape {vectors.shape}")
        model = KMeans(n_clusters=k_eff, n_init=10, random_state=random_state)
        labels = model.fit_predict(vectors)
    except Exception as e:
        logger.error(f"[CLUSTER] Error during clustering, using a single cluster: {e}")
        return [0] * n_items

    logger.info("[CLUSTER] Clustered %d articles into %d clusters", n_items, k_eff)
    return [int(label) for label in labels]
