"""Pytest configuration and fixtures for Miele@home tests."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import Mock

import httpx
import pytest

SERIAL_NUMBER = "000123456789"
ACCESS_TOKEN = "DE_test_access_token"
REFRESH_TOKEN = "DE_test_refresh_token"


def create_state(
    status: int | None = 5,
    *,
    remaining_time: list[int] | None = None,
    temperature: list[int] | None = None,
    target_temperature: list[int] | None = None,
    ventilation_step: int | None = None,
    light: int | None = None,
) -> dict[str, Any]:
    """Build a state object the way the Miele API reports it.

    Args:
        status: Primary status code, or None to omit it.
        remaining_time: Hours and minutes left.
        temperature: Raw zone temperatures in 1/100 degree.
        target_temperature: Raw zone target temperatures in 1/100 degree.
        ventilation_step: Hood fan step.
        light: Light state code.

    Returns:
        A dictionary representing a state resource response.

    """
    state: dict[str, Any] = {
        "remainingTime": remaining_time or [0, 0],
        "temperature": [
            {"value_raw": value, "value_localized": value / 100, "unit": "Celsius"}
            for value in temperature or []
        ],
        "targetTemperature": [
            {"value_raw": value, "value_localized": value / 100, "unit": "Celsius"}
            for value in target_temperature or []
        ],
        "ventilationStep": {"value_raw": ventilation_step},
        "light": light,
    }
    if status is not None:
        state["status"] = {"value_raw": status, "value_localized": "Running"}
    return state


@pytest.fixture
def make_state() -> Callable[..., dict[str, Any]]:
    """Fixture providing the state object builder."""
    return create_state


@pytest.fixture
def mock_session() -> Mock:
    """Create a mock HTTP session."""
    return Mock(spec=httpx.AsyncClient)


@pytest.fixture
def mock_token_manager() -> Mock:
    """Create a token manager that always hands out the same bearer header."""
    manager = Mock()
    manager.get_access_token = Mock(return_value=f"Bearer {ACCESS_TOKEN}")
    return manager


@pytest.fixture
def published() -> list[tuple[str, Any]]:
    """Collect values published to the hub."""
    return []


@pytest.fixture
def publish(published: list[tuple[str, Any]]) -> Mock:
    """Publish sink recording (name, value) pairs."""
    return Mock(side_effect=lambda name, value: published.append((name, value)))


@pytest.fixture
def sample_token_response() -> dict[str, Any]:
    """Fixture providing a sample token endpoint response."""
    return {
        "access_token": ACCESS_TOKEN,
        "refresh_token": REFRESH_TOKEN,
        "token_type": "Bearer",
        "expires_in": 2592000,
    }


@pytest.fixture
def sample_stored_token() -> dict[str, Any]:
    """Fixture providing a token record as persisted in storage."""
    return {
        "access_token": "stored_access",
        "refresh_token": "stored_refresh",
        "expires_in": 2592000,
        "creation_date": datetime(2024, 1, 1, tzinfo=UTC).isoformat(),
    }


@pytest.fixture
def sample_devices_response() -> dict[str, Any]:
    """Fixture providing a sample device listing response.

    Returns:
        A mapping of fabrication number to device object, one washing
        machine and one fridge.

    """
    return {
        SERIAL_NUMBER: {
            "ident": {
                "type": {"value_raw": 1, "value_localized": "Washing machine"},
                "deviceName": "Laundry",
                "deviceIdentLabel": {
                    "fabNumber": SERIAL_NUMBER,
                    "techType": "WWG360",
                },
                "xkmIdentLabel": {"releaseVersion": "04.20"},
            },
            "state": create_state(1),
        },
        "000987654321": {
            "ident": {
                "type": {"value_raw": 19, "value_localized": "Refrigerator"},
                "deviceName": "",
                "deviceIdentLabel": {
                    "fabNumber": "000987654321",
                    "techType": "K7743E",
                },
                "xkmIdentLabel": {"releaseVersion": "31.17"},
            },
            "state": create_state(5, temperature=[400], target_temperature=[400]),
        },
    }
