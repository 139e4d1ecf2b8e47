"""Tests for domain models."""

from datetime import UTC, datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest
from pydantic import ValidationError

from governance.models import (
    Actor,
    AgendaItemDraft,
    BaseEntity,
    Meeting,
    OrganizerType,
    OTPPurpose,
    OTPRecord,
    Role,
    VoteChoice,
    VoteRecord,
    VotingUnit,
)
from governance.models.base import format_timestamp, parse_timestamp


class TestBaseEntity:
    """Tests for BaseEntity."""

    def test_auto_generates_uuid(self):
        class TestEntity(BaseEntity):
            pass

        entity = TestEntity()
        assert isinstance(entity.id, UUID)
        assert entity.created_at.tzinfo is not None

    def test_strips_whitespace(self):
        unit = VotingUnit(building_id=" bld-1 ", unit_number=" 12 ", area_sqm=40.0)
        assert unit.building_id == "bld-1"
        assert unit.unit_number == "12"


class TestTimestamps:
    def test_format_is_fixed_width_utc(self):
        local = datetime(2026, 3, 2, 11, 0, tzinfo=timezone(timedelta(hours=2)))

        assert format_timestamp(local) == "2026-03-02T09:00:00.000000+00:00"

    def test_naive_values_are_utc(self):
        assert parse_timestamp("2026-03-02T09:00:00") == datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
        assert parse_timestamp(None) is None

    def test_formatted_values_sort_chronologically(self):
        early = format_timestamp(datetime(2026, 3, 2, 9, 0, 0, 5, tzinfo=UTC))
        late = format_timestamp(datetime(2026, 3, 2, 9, 0, 1, tzinfo=UTC))
        assert early < late


class TestVotingUnit:
    def test_area_must_be_positive(self):
        with pytest.raises(ValidationError):
            VotingUnit(building_id="bld-1", unit_number="1", area_sqm=0.0)

    def test_has_owner(self):
        assert VotingUnit(building_id="b", unit_number="1", area_sqm=1.0).has_owner is False
        assert VotingUnit(
            building_id="b", unit_number="1", area_sqm=1.0, owner_id="alice"
        ).has_owner is True


class TestVoteRecord:
    def make(self, **overrides) -> VoteRecord:
        values = {
            "meeting_id": UUID("00000000-0000-0000-0000-000000000001"),
            "agenda_item_id": UUID("00000000-0000-0000-0000-000000000002"),
            "voter_id": "alice",
            "choice": VoteChoice.FOR,
            "weight": 400.0,
            "voted_at": datetime(2026, 4, 10, 18, 30, tzinfo=UTC),
        }
        values.update(overrides)
        return VoteRecord(**values)

    def test_hash_is_deterministic(self):
        assert self.make().compute_hash() == self.make().compute_hash()
        assert len(self.make().compute_hash()) == 64

    def test_hash_ignores_weight(self):
        assert self.make(weight=1.0).compute_hash() == self.make().compute_hash()

    def test_hash_covers_choice(self):
        assert self.make(choice=VoteChoice.AGAINST).compute_hash() != self.make().compute_hash()

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            self.make(weight=-1.0)


class TestMeeting:
    def test_defaults(self):
        meeting = Meeting(
            building_id="bld-1", organizer_type=OrganizerType.MANAGEMENT, organizer_id="m"
        )
        assert meeting.status.value == "draft"
        assert meeting.quorum_percent == 50.0
        assert meeting.archived is False
        assert meeting.agenda_item(uuid4()) is None

    def test_quorum_percent_bounds(self):
        with pytest.raises(ValidationError):
            Meeting(
                building_id="bld-1",
                organizer_type=OrganizerType.MANAGEMENT,
                organizer_id="m",
                quorum_percent=120.0,
            )

    def test_agenda_title_required(self):
        with pytest.raises(ValidationError):
            AgendaItemDraft(title="   ")


class TestActor:
    def test_management_roles(self):
        assert Actor(user_id="u", role=Role.DIRECTOR).is_management is True
        assert Actor(user_id="u", role=Role.RESIDENT).is_management is False

    def test_otp_target_prefers_phone(self):
        assert Actor(user_id="u", role=Role.RESIDENT, phone="+1555").otp_target == "+1555"
        assert Actor(user_id="u", role=Role.RESIDENT).otp_target == "user:u"


class TestOTPRecord:
    def test_state_flags(self):
        now = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
        record = OTPRecord(
            target="+1555",
            purpose=OTPPurpose.AGENDA_VOTE,
            code_hash="x",
            attempts=5,
            max_attempts=5,
            expires_at=now + timedelta(minutes=5),
        )

        assert record.is_locked is True
        assert record.is_used is False
        assert record.is_expired(now) is False
        assert record.is_expired(now + timedelta(minutes=5)) is True
