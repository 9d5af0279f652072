"""Data models for Miele@home integration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from .const import TEMPERATURE_NULL_VALUE


@dataclass(frozen=True)
class TokenData:
    """OAuth token material with the moment it was issued.

    Replaced wholesale on every refresh, never mutated.
    """

    access_token: str
    refresh_token: str
    expires_in: int
    creation_date: datetime

    @property
    def expire_at(self) -> datetime:
        """Return the absolute expiry instant."""
        return self.creation_date + timedelta(seconds=self.expires_in)

    def is_nearly_expired(
        self, check_interval: float, now: datetime | None = None
    ) -> bool:
        """Return True when less than one check interval of validity is left."""
        now = now or datetime.now(UTC)
        return now + timedelta(seconds=check_interval) >= self.expire_at

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON serializable representation for storage."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "creation_date": self.creation_date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenData:
        """Build from a stored record.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If a field cannot be converted.

        """
        creation_date = data["creation_date"]
        if not isinstance(creation_date, datetime):
            creation_date = datetime.fromisoformat(creation_date)
        if creation_date.tzinfo is None:
            creation_date = creation_date.replace(tzinfo=UTC)
        return cls(
            access_token=str(data["access_token"]),
            refresh_token=str(data["refresh_token"]),
            expires_in=int(data["expires_in"]),
            creation_date=creation_date,
        )

    @classmethod
    def from_response(
        cls, data: dict[str, Any], now: datetime | None = None
    ) -> TokenData:
        """Build from a token endpoint response, stamping a fresh creation date."""
        return cls.from_dict({**data, "creation_date": now or datetime.now(UTC)})


@dataclass(frozen=True)
class DeviceIdentity:
    """Identity of a remote appliance, re-read on each discovery pass."""

    unique_id: str
    display_name: str
    model_number: str
    firmware_revision: str
    device_type_code: int


@dataclass(frozen=True)
class TemperatureReading:
    """One temperature zone as reported by the API, in 1/100 degree."""

    value_raw: int
    unit: str = "Celsius"

    @property
    def is_null(self) -> bool:
        """Return True when the zone reports no value."""
        return self.value_raw == TEMPERATURE_NULL_VALUE


@dataclass(frozen=True)
class RemoteAction:
    """A single field/value pair accepted by the actions resource."""

    field: str
    value: int | bool

    def as_payload(self) -> dict[str, int | bool]:
        """Return the PUT body for this action."""
        return {self.field: self.value}


@dataclass(slots=True)
class DeviceStatus:
    """Represents the telemetry of one device reported by the Miele API."""

    status: int | None
    program_phase: int | None = None
    remaining_time: tuple[int, int] = (0, 0)
    temperature: list[TemperatureReading] = field(default_factory=list)
    target_temperature: list[TemperatureReading] = field(default_factory=list)
    ventilation_step: int | None = None
    light: int | None = None
    raw_state: dict = field(default_factory=dict)
