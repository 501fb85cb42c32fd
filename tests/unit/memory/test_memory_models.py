"""Tests for memory domain models."""

from uuid import uuid4

import pytest
from pydantic import ValidationError

from memobot.memory.models import Category, Memory, MemoryRelationship, utc_now
from memobot.memory.models.relationship import canonical_pair


class TestMemory:
    """Tests for Memory."""

    def test_defaults(self) -> None:
        memory = Memory(owner_id="o", content="text")
        assert memory.id is not None
        assert not memory.is_deleted

    def test_soft_deleted(self) -> None:
        memory = Memory(owner_id="o", content="text", deleted_at=utc_now())
        assert memory.is_deleted


class TestCategory:
    """Tests for Category."""

    def test_name_required(self) -> None:
        with pytest.raises(ValidationError):
            Category(owner_id="o", name="")

    def test_count_cannot_go_negative(self) -> None:
        category = Category(owner_id="o", name="Work")
        with pytest.raises(ValidationError):
            category.memory_count = -1


class TestMemoryRelationship:
    """Tests for relationship edges."""

    def test_between_orders_pair(self) -> None:
        a, b = uuid4(), uuid4()
        edge = MemoryRelationship.between("o", b, a, 0.876)

        assert (edge.memory_a_id, edge.memory_b_id) == canonical_pair(a, b)
        assert edge.similarity_score == 0.88
        assert edge.relationship_type == "related"

    def test_self_edge_rejected(self) -> None:
        a = uuid4()
        with pytest.raises(ValidationError):
            MemoryRelationship(owner_id="o", memory_a_id=a, memory_b_id=a, similarity_score=0.9)

    def test_non_canonical_rejected(self) -> None:
        a, b = sorted([uuid4(), uuid4()])
        with pytest.raises(ValidationError):
            MemoryRelationship(owner_id="o", memory_a_id=b, memory_b_id=a, similarity_score=0.9)

    def test_other_endpoint(self) -> None:
        edge = MemoryRelationship.between("o", uuid4(), uuid4(), 0.7)
        assert edge.other(edge.memory_a_id) == edge.memory_b_id
        assert edge.other(edge.memory_b_id) == edge.memory_a_id
