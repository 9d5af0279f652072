"""Tests for the Miele@home data models."""

from datetime import UTC, datetime, timedelta

import pytest

from custom_components.miele_athome.const import TEMPERATURE_NULL_VALUE
from custom_components.miele_athome.models import (
    RemoteAction,
    TemperatureReading,
    TokenData,
)

CREATED = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
CHECK_INTERVAL = 1800


@pytest.fixture
def token_data() -> TokenData:
    """Create token material valid for one hour."""
    return TokenData(
        access_token="access",
        refresh_token="refresh",
        expires_in=3600,
        creation_date=CREATED,
    )


class TestTokenDataExpiry:
    """Tests for the nearly expired predicate."""

    def test_expire_at_adds_lifetime_to_creation(self, token_data: TokenData) -> None:
        """Test that expire_at is creation date plus expires_in."""
        assert token_data.expire_at == CREATED + timedelta(hours=1)

    def test_is_nearly_expired_false_when_more_than_interval_left(
        self, token_data: TokenData
    ) -> None:
        """Test that a token with over one interval left is not nearly expired."""
        now = CREATED + timedelta(minutes=29)
        assert token_data.is_nearly_expired(CHECK_INTERVAL, now) is False

    def test_is_nearly_expired_true_at_boundary(self, token_data: TokenData) -> None:
        """Test that exactly one interval left counts as nearly expired."""
        now = CREATED + timedelta(minutes=30)
        assert token_data.is_nearly_expired(CHECK_INTERVAL, now) is True

    def test_is_nearly_expired_true_after_expiry(self, token_data: TokenData) -> None:
        """Test that an expired token is nearly expired."""
        now = CREATED + timedelta(days=1)
        assert token_data.is_nearly_expired(CHECK_INTERVAL, now) is True

    def test_zero_lifetime_is_always_nearly_expired(self) -> None:
        """Test that a token of unknown lifetime is refreshed right away."""
        token = TokenData("access", "refresh", 0, CREATED)
        assert token.is_nearly_expired(CHECK_INTERVAL, CREATED) is True


class TestTokenDataSerialization:
    """Tests for token storage records."""

    def test_round_trip_preserves_all_fields(self, token_data: TokenData) -> None:
        """Test that a stored record reads back to the same token."""
        assert TokenData.from_dict(token_data.as_dict()) == token_data

    def test_as_dict_stores_iso_date(self, token_data: TokenData) -> None:
        """Test that the creation date is stored as an ISO string."""
        assert token_data.as_dict()["creation_date"] == CREATED.isoformat()

    def test_from_dict_assumes_utc_for_naive_dates(self) -> None:
        """Test that a naive creation date is read as UTC."""
        token = TokenData.from_dict(
            {
                "access_token": "a",
                "refresh_token": "r",
                "expires_in": "60",
                "creation_date": "2024-01-01T12:00:00",
            }
        )
        assert token.creation_date == CREATED
        assert token.expires_in == 60

    def test_from_dict_raises_on_missing_field(self) -> None:
        """Test that an incomplete record raises KeyError."""
        with pytest.raises(KeyError):
            TokenData.from_dict({"access_token": "a"})

    def test_from_response_stamps_creation_date(self) -> None:
        """Test that a token response gets the current time as creation date."""
        token = TokenData.from_response(
            {"access_token": "a", "refresh_token": "r", "expires_in": 100},
            now=CREATED,
        )
        assert token.creation_date == CREATED
        assert token.expire_at == CREATED + timedelta(seconds=100)


class TestTemperatureReading:
    """Tests for TemperatureReading."""

    def test_is_null_for_sentinel(self) -> None:
        """Test that the sentinel raw value marks a missing reading."""
        assert TemperatureReading(TEMPERATURE_NULL_VALUE).is_null is True
        assert TemperatureReading(400).is_null is False


class TestRemoteAction:
    """Tests for RemoteAction."""

    def test_as_payload_builds_single_field_body(self) -> None:
        """Test that the action is sent as a one-field body."""
        assert RemoteAction("powerOff", True).as_payload() == {"powerOff": True}
