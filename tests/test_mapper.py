"""Unit tests for wire record translation."""
from __future__ import annotations

from datetime import datetime, timezone

from support import message_record, user_record

from chatsync.schemas import Gender
from chatsync.services.mapper import message_from_record, message_to_record, user_from_record, user_to_record

PLACEHOLDER = "https://via.placeholder.com/150"


def test_user_from_record_fills_defaults_for_missing_fields() -> None:
    user = user_from_record({"id": "u1"}, placeholder_avatar=PLACEHOLDER)

    assert user.id == "u1"
    assert user.username == "Unknown"
    assert user.avatar == PLACEHOLDER
    assert user.email == ""
    assert user.friends == []
    assert user.requests == []
    assert user.blocked_users == []
    assert user.is_deactivated is False
    assert user.gender is None


def test_user_from_record_tolerates_malformed_values() -> None:
    user = user_from_record(
        {
            "id": "u1",
            "username": None,
            "friends": "not-a-list",
            "requests": ["u2", "u2", None, "u3"],
            "gender": "Robot",
            "premium_expiry": "soon",
        },
        placeholder_avatar=PLACEHOLDER,
    )

    assert user.username == "Unknown"
    assert user.friends == []
    assert user.requests == ["u2", "u3"]
    assert user.gender is None
    assert user.premium_expiry is None


def test_user_record_survives_round_trip() -> None:
    record = user_record(
        "u1",
        "sarah",
        name="Sarah",
        description="hi",
        birthdate="1990-01-01",
        gender="Female",
        is_private_profile=True,
        allow_private_chat=False,
        friends=["u2"],
        requests=["u3"],
        blocked_users=["u4"],
        last_seen="2024-01-01T10:00:00Z",
        is_deactivated=False,
        instagram_link="https://instagram.com/sarah",
        is_premium=True,
        premium_expiry=1_700_000_000_000,
    )

    user = user_from_record(record)

    assert user.gender is Gender.FEMALE
    assert user_to_record(user) == record


def test_user_to_record_keeps_absent_optionals_as_none() -> None:
    record = user_to_record(user_from_record({"id": "u1", "username": "bob"}, placeholder_avatar=PLACEHOLDER))

    assert record["name"] is None
    assert record["gender"] is None
    assert record["premium_expiry"] is None


def test_user_dumps_camel_case_for_ui() -> None:
    user = user_from_record(user_record("u1", "sarah", is_private_profile=True))

    dumped = user.model_dump(by_alias=True)

    assert dumped["isPrivateProfile"] is True
    assert "blockedUsers" in dumped


def test_message_from_record_parses_iso_timestamps() -> None:
    message = message_from_record(message_record("m1", "u1", "u2", "hello", "2024-01-01T00:00:00Z"))

    assert message.timestamp == 1_704_067_200_000
    assert message.read is False


def test_message_from_record_accepts_datetime_and_numeric_strings() -> None:
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)

    assert message_from_record({"id": "m1", "timestamp": moment}).timestamp == 1_704_067_200_000
    assert message_from_record({"id": "m2", "timestamp": "1704067200000"}).timestamp == 1_704_067_200_000


def test_message_from_record_defaults_missing_fields() -> None:
    message = message_from_record({"id": "m1", "content": None})

    assert message.sender_id == ""
    assert message.receiver_id == ""
    assert message.content == ""
    assert message.timestamp > 0


def test_message_record_survives_round_trip() -> None:
    record = message_record("m1", "u1", "u2", "hello", 1_700_000_000_000, read=True)

    assert message_to_record(message_from_record(record)) == record


def test_non_mapping_records_map_to_empty_entities() -> None:
    assert message_from_record(None).id == ""
    assert user_from_record(["u1"], placeholder_avatar=PLACEHOLDER).id == ""
