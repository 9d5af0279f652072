"""API client for the Miele@home cloud.

This module provides functions to interact with the Miele 3rd party API,
including token requests, device discovery, state retrieval and actions.
"""

import logging
from typing import Any

import httpx
from homeassistant.core import HomeAssistant
from homeassistant.helpers.httpx_client import create_async_httpx_client
from httpx_retries import Retry, RetryTransport

from .const import DEVICES_URL, TOKEN_URL
from .models import DeviceIdentity, DeviceStatus, TemperatureReading

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403


class MieleApiClientError(Exception):
    """Base exception for Miele API client errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize with an optional HTTP status code."""
        super().__init__(message)
        self.status_code = status_code


class MieleApiAuthError(MieleApiClientError):
    """Exception raised for authentication errors."""


def create_headers(
    authorization: str | None = None,
    accept: str = "application/json",
) -> dict[str, str]:
    """Create HTTP headers for Miele API requests.

    Args:
        authorization: Optional bearer header value, e.g. ``"Bearer abc"``.
        accept: Value of the accept header.

    Returns:
        Dictionary containing HTTP headers for API requests.

    """
    headers = {
        "accept": accept,
        "content-type": "application/json",
    }
    if authorization:
        headers["Authorization"] = authorization
    return headers


def device_url(serial_number: str, resource: str) -> str:
    """Return the URL of a per-device resource (state, actions, events)."""
    return f"{DEVICES_URL}/{serial_number}/{resource}"


def is_http_error(status: int) -> bool:
    """Check if HTTP status code indicates an error.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is 400 or higher, False otherwise.

    """
    return status >= HTTP_BAD_REQUEST


def is_auth_error(status: int) -> bool:
    """Check if HTTP status code indicates authentication error.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is 401 or 403, False otherwise.

    """
    return status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN)


def validate_response(response: httpx.Response) -> Any:  # noqa: ANN401
    """Validate HTTP response and return parsed JSON data.

    Args:
        response: HTTP response object to validate.

    Returns:
        Parsed JSON data from response, or an empty dict for empty bodies.

    Raises:
        MieleApiAuthError: If authentication error is detected.
        MieleApiClientError: If the request failed or the body is not JSON.

    """
    _validate_http_status(response)
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as err:
        error_msg = "Invalid JSON response"
        raise MieleApiClientError(error_msg, response.status_code) from err


def _validate_http_status(response: httpx.Response) -> None:
    status = response.status_code
    if not is_http_error(status):
        return

    if is_auth_error(status):
        auth_error = f"Authentication error: {status}"
        raise MieleApiAuthError(auth_error, status)

    client_error = f"Request failed: {status}"
    if response.content:
        client_error = f"{client_error} {response.text}"
    raise MieleApiClientError(client_error, status)


def parse_device_identity(device: dict[str, Any]) -> DeviceIdentity:
    """Build a DeviceIdentity from one entry of the device listing.

    Args:
        device: Device object containing an ``ident`` block.

    Returns:
        Parsed DeviceIdentity.

    """
    ident = device.get("ident", {})
    device_type = ident.get("type", {})
    return DeviceIdentity(
        unique_id=str(ident["deviceIdentLabel"]["fabNumber"]),
        display_name=ident.get("deviceName") or device_type.get("value_localized", ""),
        model_number=str(ident.get("deviceIdentLabel", {}).get("techType", "")),
        firmware_revision=str(ident.get("xkmIdentLabel", {}).get("releaseVersion", "")),
        device_type_code=int(device_type.get("value_raw", 0)),
    )


def extract_devices(data: dict[str, Any]) -> list[DeviceIdentity]:
    """Extract device identities from the device listing response.

    Entries that cannot be parsed are logged and skipped.

    Args:
        data: Mapping of fabrication number to device object.

    Returns:
        List of DeviceIdentity objects.

    """
    devices = []
    for key, device in data.items():
        try:
            devices.append(parse_device_identity(device))
        except (KeyError, TypeError, ValueError):
            _LOGGER.warning("Skipping malformed device entry %s", key)
    return devices


def _parse_temperatures(
    entries: list[dict[str, Any]] | None,
) -> list[TemperatureReading]:
    return [
        TemperatureReading(
            value_raw=int(entry["value_raw"]),
            unit=entry.get("unit") or "Celsius",
        )
        for entry in entries or []
        if entry.get("value_raw") is not None
    ]


def _value_raw(entry: Any) -> int | None:  # noqa: ANN401
    if isinstance(entry, dict):
        entry = entry.get("value_raw")
    return None if entry is None else int(entry)


def parse_device_status(data: dict[str, Any]) -> DeviceStatus:
    """Parse a state payload into a DeviceStatus.

    Accepts either a bare state object or a device object carrying ``state``.

    Args:
        data: Payload from the state resource or a ``device`` event.

    Returns:
        DeviceStatus with the fields the characteristics consume.

    """
    state = data.get("state", data)
    remaining = state.get("remainingTime") or [0, 0]
    return DeviceStatus(
        status=_value_raw(state.get("status")),
        program_phase=_value_raw(state.get("programPhase")),
        remaining_time=(int(remaining[0]), int(remaining[1])),
        temperature=_parse_temperatures(state.get("temperature")),
        target_temperature=_parse_temperatures(state.get("targetTemperature")),
        ventilation_step=_value_raw(state.get("ventilationStep")),
        light=_value_raw(state.get("light")),
        raw_state=state,
    )


def create_session_client(hass: HomeAssistant) -> httpx.AsyncClient:
    """Create HTTP client with retry logic for Miele API.

    Args:
        hass: Home Assistant instance.

    Returns:
        Configured httpx AsyncClient with retry transport.

    """
    base_client = create_async_httpx_client(hass, timeout=10.0)
    retry = Retry(total=3, backoff_factor=0.5)
    base_client._transport = RetryTransport(  # noqa: SLF001
        transport=base_client._transport,  # noqa: SLF001
        retry=retry,
    )
    return base_client


async def async_refresh_token(
    session: httpx.AsyncClient,
    authorization: str,
    client_id: str,
    client_secret: str,
    refresh_token: str,
) -> dict[str, Any]:
    """Exchange a refresh token for new token material.

    Args:
        session: HTTP client session.
        authorization: Current bearer header, sent as credential.
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        refresh_token: Refresh token of the current grant.

    Returns:
        Token response with access_token, refresh_token and expires_in.

    Raises:
        MieleApiAuthError: If authentication fails.
        MieleApiClientError: If API request fails.

    """
    payload = {
        "client_id": client_id,
        "client_secret": client_secret,
        "refresh_token": refresh_token,
        "grant_type": "refresh_token",
    }
    headers = {
        "Authorization": authorization,
        "accept": "application/json;charset=utf-8",
    }

    _LOGGER.debug("Refreshing token with Miele API")
    response = await session.post(TOKEN_URL, headers=headers, data=payload)
    return validate_response(response)


async def async_request_token(
    session: httpx.AsyncClient,
    client_id: str,
    client_secret: str,
    code: str,
    redirect_uri: str,
) -> dict[str, Any]:
    """Exchange an authorization grant code for initial token material.

    Raises:
        MieleApiAuthError: If authentication fails.
        MieleApiClientError: If API request fails.

    """
    payload = {
        "client_id": client_id,
        "client_secret": client_secret,
        "code": code,
        "redirect_uri": redirect_uri,
        "grant_type": "authorization_code",
    }
    headers = {"accept": "application/json;charset=utf-8"}

    _LOGGER.debug("Requesting token for authorization grant")
    response = await session.post(TOKEN_URL, headers=headers, data=payload)
    return validate_response(response)


async def async_get_devices(
    session: httpx.AsyncClient,
    authorization: str,
) -> list[DeviceIdentity]:
    """Fetch the user's appliances from the Miele API.

    Raises:
        MieleApiAuthError: If authentication fails.
        MieleApiClientError: If API request fails.

    """
    headers = create_headers(authorization)

    _LOGGER.debug("Fetching devices from Miele API")
    response = await session.get(DEVICES_URL, headers=headers)
    data = validate_response(response)
    devices = extract_devices(data)
    _LOGGER.debug("Retrieved %d devices from Miele API", len(devices))
    return devices


async def async_get_state(
    session: httpx.AsyncClient,
    authorization: str,
    serial_number: str,
) -> DeviceStatus:
    """Fetch the current state of one device.

    Raises:
        MieleApiAuthError: If authentication fails.
        MieleApiClientError: If API request fails.

    """
    url = device_url(serial_number, "state")
    response = await session.get(url, headers=create_headers(authorization))
    return parse_device_status(validate_response(response))


async def async_get_actions(
    session: httpx.AsyncClient,
    authorization: str,
    serial_number: str,
) -> dict[str, Any]:
    """Fetch the actions a device accepts in its current state.

    Returns:
        Actions body, e.g. ``{"processAction": [1], "powerOn": False, ...}``.

    Raises:
        MieleApiAuthError: If authentication fails.
        MieleApiClientError: If API request fails.

    """
    url = device_url(serial_number, "actions")
    response = await session.get(url, headers=create_headers(authorization))
    data = validate_response(response)
    _LOGGER.debug("%s: Allowed actions: %s", serial_number, data)
    return data


async def async_put_action(
    session: httpx.AsyncClient,
    authorization: str,
    serial_number: str,
    payload: dict[str, Any],
) -> int:
    """Send a control action to a device.

    Args:
        session: HTTP client session.
        authorization: Bearer header value.
        serial_number: Target device fabrication number.
        payload: Action body, e.g. ``{"processAction": 1}``.

    Returns:
        HTTP status code of the acknowledgement.

    Raises:
        MieleApiAuthError: If authentication fails.
        MieleApiClientError: If API request fails.

    """
    url = device_url(serial_number, "actions")

    _LOGGER.debug("Sending action to device %s: %s", serial_number, payload)
    response = await session.put(
        url, headers=create_headers(authorization), json=payload
    )
    validate_response(response)
    _LOGGER.debug(
        "Action response for device %s: %s", serial_number, response.status_code
    )
    return response.status_code
