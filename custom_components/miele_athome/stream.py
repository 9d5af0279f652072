"""Server-sent event stream for Miele@home real-time updates.

This module keeps one live event channel per appliance open against the
Miele cloud and forwards ``device`` events to the owning accessory.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

import httpx
from httpx_sse import SSEError, aconnect_sse

from . import api
from .const import (
    DEFAULT_RECONNECT_INTERVAL,
    STREAM_RECONNECT_DELAY,
    STREAM_STAGGER_STEP,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from .auth import MieleTokenManager
    from .models import DeviceStatus

_LOGGER = logging.getLogger(__name__)

# No read timeout: the remote only sends pings every few minutes.
STREAM_TIMEOUT = httpx.Timeout(10.0, read=None)


class StreamState(StrEnum):
    """Connection states of an event stream."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKOFF = "backoff"
    CLOSED = "closed"


class MieleStreamConnection:
    """Live update channel for a single Miele appliance.

    The events handled are:
    - device: Full device state, forwarded as a DeviceStatus
    - ping: Keepalive without payload

    Every construction takes the next stagger slot so that appliances
    failing at the same moment do not reconnect at the same moment.
    """

    _constructed: ClassVar[int] = 0

    def __init__(
        self,
        session: httpx.AsyncClient,
        token_manager: MieleTokenManager,
        serial_number: str,
        on_device_update: Callable[[DeviceStatus], None],
        reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL,
    ) -> None:
        """Initialize the event stream.

        Args:
            session: HTTP client session.
            token_manager: Source of the bearer header.
            serial_number: Fabrication number of the appliance.
            on_device_update: Called with every parsed telemetry update.
            reconnect_interval: Seconds between forced reconnects.

        """
        self._session = session
        self._token_manager = token_manager
        self._serial_number = serial_number
        self._on_device_update = on_device_update
        self._reconnect_interval = reconnect_interval
        self._url = api.device_url(serial_number, "events")

        self._stagger = MieleStreamConnection._constructed * STREAM_STAGGER_STEP
        MieleStreamConnection._constructed += 1

        self._state = StreamState.DISCONNECTED
        self._reconnect_reason: str | None = None
        self._listen_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._forced_reconnect_task: asyncio.Task[None] | None = None
        self._shutdown = False

    @property
    def url(self) -> str:
        """Return the event stream endpoint."""
        return self._url

    @property
    def state(self) -> StreamState:
        """Return the connection state."""
        return self._state

    @property
    def stagger(self) -> float:
        """Return the per-accessory offset added to every reconnect delay."""
        return self._stagger

    @property
    def reconnect_delay(self) -> float:
        """Return the delay before a reconnect after the channel ended."""
        return STREAM_RECONNECT_DELAY + self._stagger

    @property
    def reconnect_reason(self) -> str | None:
        """Return why the current channel was opened."""
        return self._reconnect_reason

    async def async_connect(self, reason: str = "initial") -> None:
        """Open the event channel, closing any existing one first."""
        if self._shutdown:
            _LOGGER.debug(
                "%s: Event stream closed, not connecting", self._serial_number
            )
            return

        current = asyncio.current_task()
        if self._reconnect_task is not None and self._reconnect_task is not current:
            self._reconnect_task.cancel()
            self._reconnect_task = None

        await self._async_close_channel()

        self._reconnect_reason = reason
        self._state = StreamState.CONNECTING
        _LOGGER.debug(
            "%s: Connecting event stream at %s (%s)",
            self._serial_number,
            self._url,
            reason,
        )
        self._listen_task = asyncio.create_task(self._async_listen())

        # Every new channel gets a full interval before the forced reconnect.
        if self._forced_reconnect_task is not current:
            if self._forced_reconnect_task is not None:
                self._forced_reconnect_task.cancel()
            self._forced_reconnect_task = asyncio.create_task(
                self._async_forced_reconnect()
            )

    async def async_disconnect(self) -> None:
        """Close the channel and cancel every pending timer."""
        self._shutdown = True

        for task in (self._reconnect_task, self._forced_reconnect_task):
            if task is not None and task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._reconnect_task = None
        self._forced_reconnect_task = None

        await self._async_close_channel()
        self._state = StreamState.CLOSED
        _LOGGER.info("%s: Disconnected event stream", self._serial_number)

    async def _async_close_channel(self) -> None:
        task, self._listen_task = self._listen_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._state = StreamState.DISCONNECTED

    async def _async_listen(self) -> None:
        headers = api.create_headers(
            self._token_manager.get_access_token(),
            accept="text/event-stream",
        )

        try:
            async with aconnect_sse(
                self._session,
                "GET",
                self._url,
                headers=headers,
                timeout=STREAM_TIMEOUT,
            ) as event_source:
                status = event_source.response.status_code
                if api.is_http_error(status):
                    error_msg = f"Event stream request failed: {status}"
                    raise api.MieleApiClientError(error_msg, status)

                self._state = StreamState.CONNECTED
                _LOGGER.info("%s: Event stream connected", self._serial_number)

                async for event in event_source.aiter_sse():
                    self._handle_event(event.event, event.data)

        except (
            httpx.HTTPError,
            httpx.StreamError,
            SSEError,
            api.MieleApiClientError,
        ) as err:
            _LOGGER.warning(
                "%s: Event stream fault, channel closed: %s", self._serial_number, err
            )
            reason = f"fault: {err}"
        else:
            _LOGGER.info("%s: Event stream closed by remote", self._serial_number)
            reason = "closed by remote"

        self._state = StreamState.BACKOFF
        self._schedule_reconnect(reason)

    def _handle_event(self, name: str, data: str) -> None:
        """Dispatch one server-sent event."""
        if name == "ping":
            _LOGGER.debug("%s: Received keepalive", self._serial_number)
            return

        if name != "device":
            _LOGGER.debug("%s: Ignoring event %s", self._serial_number, name)
            return

        try:
            status = api.parse_device_status(json.loads(data))
        except (ValueError, KeyError, TypeError, AttributeError):
            _LOGGER.warning(
                "%s: Invalid device event received: %s", self._serial_number, data
            )
            return

        _LOGGER.debug("%s: Received device update: %s", self._serial_number, status)
        try:
            self._on_device_update(status)
        except Exception:
            _LOGGER.exception("Error in device update callback")

    def _schedule_reconnect(self, reason: str) -> None:
        """Schedule a single reconnection attempt."""
        if self._shutdown:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return  # Reconnection already scheduled

        delay = self.reconnect_delay
        _LOGGER.info(
            "%s: Reconnecting event stream in %ss", self._serial_number, delay
        )

        async def reconnect() -> None:
            await asyncio.sleep(delay)
            await self.async_connect(reason)

        self._reconnect_task = asyncio.create_task(reconnect())

    async def _async_forced_reconnect(self) -> None:
        """Re-establish the channel periodically to drop silently stale ones."""
        while not self._shutdown:
            await asyncio.sleep(self._reconnect_interval)
            _LOGGER.debug("%s: Forced periodic reconnect", self._serial_number)
            await self.async_connect("periodic")
