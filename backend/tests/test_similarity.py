from __future__ import annotations

from types import SimpleNamespace
from uuid import uuid4

import pytest

from chatapi.rag.similarity import cosine_similarity, score_from_cosine_distance
from chatapi.repository import conversations as repo


def test_identical_vectors_score_one() -> None:
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_scaled_copy_scores_one() -> None:
    assert cosine_similarity([1.0, 2.0, 3.0], [2.0, 4.0, 6.0]) == pytest.approx(1.0)
    assert cosine_similarity([0.5, -1.5], [5.0, -15.0]) == pytest.approx(1.0)


def test_orthogonal_and_opposite_vectors() -> None:
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


def test_zero_vector_scores_zero() -> None:
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_mismatched_lengths_are_rejected() -> None:
    with pytest.raises(ValueError):
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


def test_empty_vectors_are_rejected() -> None:
    with pytest.raises(ValueError):
        cosine_similarity([], [])


def test_cosine_distance_maps_to_similarity_score() -> None:
    assert score_from_cosine_distance(0.0) == pytest.approx(1.0)
    assert score_from_cosine_distance(1.0) == pytest.approx(0.0)
    assert score_from_cosine_distance(2.0) == pytest.approx(-1.0)


def test_undefined_cosine_distance_scores_zero() -> None:
    # pgvector yields NaN when either vector has zero norm.
    assert score_from_cosine_distance(float("nan")) == 0.0
    assert score_from_cosine_distance(None) == 0.0


class _Rows:
    def __init__(self, rows) -> None:
        self._rows = rows

    def all(self):
        return self._rows


class _Session:
    def __init__(self, rows) -> None:
        self.rows = rows

    async def execute(self, stmt):
        return _Rows(self.rows)


@pytest.mark.asyncio
async def test_find_similar_messages_never_reports_nan_scores() -> None:
    near = SimpleNamespace(id=uuid4())
    zero = SimpleNamespace(id=uuid4())
    db = _Session([(near, 0.25), (zero, float("nan"))])

    hits = await repo.find_similar_messages(db, conversation_id=uuid4(), embedding=[0.0, 0.0], limit=5)

    assert [h.message for h in hits] == [near, zero]
    assert hits[0].score == pytest.approx(0.75)
    assert hits[1].score == 0.0
