import newsbrief.briefing.clustering as clustering
from newsbrief.briefing.clustering import cluster_embeddings, effective_cluster_count


def test_effective_cluster_count():
    assert effective_cluster_count(12, 10) == 6
    assert effective_cluster_count(4, 10) == 2
    assert effective_cluster_count(3, 10) == 1
    assert effective_cluster_count(40, 10) == 10


def test_empty_and_single():
    assert cluster_embeddings([], 10) == []
    assert cluster_embeddings([[0.1, 0.2]], 10) == [0]


def test_three_items_collapse_to_one_cluster():
    assert cluster_embeddings([[0.0, 0.0], [1.0, 1.0], [5.0, 5.0]], 10) == [0, 0, 0]


def test_separates_obvious_groups():
    vectors = [
        [0.0, 0.0], [0.1, 0.0], [0.0, 0.1],
        [10.0, 10.0], [10.1, 10.0], [10.0, 10.1],
    ]
    labels = cluster_embeddings(vectors, 2, random_state=0)

    assert len(labels) == 6
    assert set(labels) == {0, 1}
    assert labels[0] == labels[1] == labels[2]
    assert labels[3] == labels[4] == labels[5]
    assert labels[0] != labels[3]


def test_labels_bounded_by_effective_k():
    vectors = [[float(i), float(i % 3)] for i in range(12)]
    labels = cluster_embeddings(vectors, 10, random_state=0)
    assert all(0 <= label < 6 for label in labels)


def test_requested_k_passed_to_kmeans(monkeypatch):
    seen = {}

    class FakeKMeans:
        def __init__(self, n_clusters, n_init, random_state):
            seen["k"] = n_clusters

        def fit_predict(self, vectors):
            return [i % seen["k"] for i in range(len(vectors))]

    monkeypatch.setattr(clustering, "KMeans", FakeKMeans)
    labels = cluster_embeddings([[0.0, float(i)] for i in range(4)], 10)

    assert seen["k"] == 2
    assert labels == [0, 1, 0, 1]


def test_failure_falls_back_to_single_cluster(monkeypatch):
    class BrokenKMeans:
        def __init__(self, **kwargs):
            pass

        def fit_predict(self, vectors):
            raise RuntimeError("boom")

    monkeypatch.setattr(clustering, "KMeans", BrokenKMeans)
    assert cluster_embeddings([[0.0, 1.0]] * 5, 3) == [0, 0, 0, 0, 0]


def test_ragged_vectors_fall_back():
    assert cluster_embeddings([[0.0, 1.0], [1.0], [2.0, 2.0], [3.0, 3.0]], 2) == [0, 0, 0, 0]
