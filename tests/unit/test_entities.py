"""Tests for entity snapshots and input contracts."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pydantic
import pytest

from timeledger.core.enums import LifecycleState
from timeledger.domain.entities import (
    DomainEntity,
    DomainFields,
    TagFields,
    TimeSlotEntity,
    TimeSlotFields,
    TimeSlotPatch,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestInputContracts:
    """Test field validation before persistence."""

    def test_domain_fields_valid(self):
        fields = DomainFields(name="Work", color="#fff")
        assert fields.order == 0

    @pytest.mark.parametrize("color", ["red", "#12345", "#gggggg", ""])
    def test_bad_color_rejected(self, color):
        with pytest.raises(pydantic.ValidationError):
            DomainFields(name="Work", color=color)

    def test_empty_name_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            TagFields(domain_id=uuid4(), name="", color="#000000")

    def test_unknown_fields_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            DomainFields(name="Work", color="#000000", version=7)

    def test_slot_start_must_precede_end(self):
        with pytest.raises(pydantic.ValidationError, match="start must be before end"):
            TimeSlotFields(start=T0, end=T0)

    def test_slot_tag_ids_deduplicated_in_order(self):
        a, b = uuid4(), uuid4()
        fields = TimeSlotFields(start=T0, end=T0 + timedelta(hours=1), tag_ids=[b, a, b])
        assert fields.tag_ids == [b, a]

    def test_naive_times_treated_as_utc(self):
        fields = TimeSlotFields(start=datetime(2026, 3, 2, 9), end=datetime(2026, 3, 2, 10))
        assert fields.start == T0

    def test_patch_is_partial(self):
        patch = TimeSlotPatch(note="moved")
        assert patch.model_dump(exclude_unset=True) == {"note": "moved"}


@pytest.mark.unit
class TestSnapshots:
    """Test immutable snapshots."""

    def test_snapshot_is_frozen(self):
        domain = DomainEntity(id=uuid4(), version=1, created_at=T0, updated_at=T0, name="Work", color="#000")
        with pytest.raises(pydantic.ValidationError):
            domain.name = "Other"

    def test_lifecycle_state(self):
        domain = DomainEntity(id=uuid4(), version=2, created_at=T0, updated_at=T0, name="Work", color="#000")
        deleted = domain.model_copy(update={"deleted_at": T0})

        assert domain.lifecycle_state is LifecycleState.ACTIVE
        assert deleted.lifecycle_state is LifecycleState.SOFT_DELETED
        assert deleted.is_deleted

    def test_duration_minutes(self):
        slot = TimeSlotEntity(
            id=uuid4(), version=1, created_at=T0, updated_at=T0,
            start=T0, end=T0 + timedelta(minutes=95),
        )
        assert slot.duration_minutes == 95.0

    def test_content_is_json_ready(self):
        tag_id = uuid4()
        slot = TimeSlotEntity(
            id=uuid4(), version=1, created_at=T0, updated_at=T0,
            start=T0, end=T0 + timedelta(minutes=30), tag_ids=[tag_id],
        )
        content = slot.content()

        assert content["tag_ids"] == [str(tag_id)]
        assert TimeSlotEntity.model_validate(content) == slot
