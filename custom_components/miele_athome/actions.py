"""Control actions for Miele@home appliances.

Writes follow an optimistic protocol: the hub already shows the requested
value, so a write the appliance refuses is undone by republishing the
cached value after a short delay.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx

from . import api
from .const import HTTP_INTERNAL_SERVER_ERROR, REVERT_ACTIVATE_REQUEST_DELAY

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Mapping

    from .auth import MieleTokenManager
    from .models import RemoteAction

_LOGGER = logging.getLogger(__name__)


class DispatchOutcome(StrEnum):
    """Result of a control request."""

    SENT = "sent"
    REJECTED = "rejected"
    DISABLED = "disabled"
    FAILED = "failed"


def is_action_allowed(allowed: Mapping[str, Any], action: RemoteAction) -> bool:
    """Check an action against the allowed actions body.

    List fields (``processAction``, ``light``) must contain the value, flag
    fields (``powerOn``, ``powerOff``) must be true.
    """
    reported = allowed.get(action.field)
    if isinstance(reported, list):
        return action.value in reported
    return reported is True


def is_zone_allowed(allowed: Mapping[str, Any], zone: int) -> bool:
    """Check whether a target temperature zone accepts writes."""
    return any(
        entry.get("zone") == zone for entry in allowed.get("targetTemperature") or []
    )


class MieleActionDispatcher:
    """Sends control actions for one accessory and owns its revert timers."""

    def __init__(
        self,
        session: httpx.AsyncClient,
        token_manager: MieleTokenManager,
        revert_delay: float = REVERT_ACTIVATE_REQUEST_DELAY,
    ) -> None:
        """Initialize the dispatcher."""
        self._session = session
        self._token_manager = token_manager
        self._revert_delay = revert_delay
        self._tasks: set[asyncio.Task[Any]] = set()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run coro in the background, tracked for cancellation."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def async_cancel(self) -> None:
        """Cancel pending writes and revert timers."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

    def _schedule_revert(
        self,
        serial_number: str,
        requested: Any,  # noqa: ANN401
        current: Any,  # noqa: ANN401
        revert: Callable[[], None],
    ) -> None:
        """Undo the optimistic value unless it already equals the cached one."""
        if requested == current:
            return

        _LOGGER.info("%s: Reverting state to %s", serial_number, current)

        async def delayed_revert() -> None:
            await asyncio.sleep(self._revert_delay)
            revert()

        self.submit(delayed_revert())

    async def async_dispatch(
        self,
        serial_number: str,
        requested: Any,  # noqa: ANN401
        current: Any,  # noqa: ANN401
        action_table: Mapping[Any, RemoteAction],
        revert: Callable[[], None],
        *,
        disable_flag: bool = False,
        disabling_value: Any = 0,  # noqa: ANN401
    ) -> DispatchOutcome:
        """Translate a requested characteristic value into a remote action.

        Args:
            serial_number: Fabrication number of the appliance.
            requested: Value the user asked for.
            current: Cached value before the request.
            action_table: Maps logical values to remote actions.
            revert: Republishes the cached value.
            disable_flag: User opted the appliance out of the disabling action.
            disabling_value: Requested value that counts as the disabling action.

        Returns:
            The outcome. Never raises for remote or transport errors.

        """
        if disable_flag and requested == disabling_value:
            _LOGGER.info("%s: Ignoring stop request", serial_number)
            self._schedule_revert(serial_number, requested, current, revert)
            return DispatchOutcome.DISABLED

        action = action_table.get(requested)
        if action is None:
            _LOGGER.error(
                "%s: No remote action for requested value %s", serial_number, requested
            )
            self._schedule_revert(serial_number, requested, current, revert)
            return DispatchOutcome.FAILED

        authorization = self._token_manager.get_access_token()
        try:
            allowed = await api.async_get_actions(
                self._session, authorization, serial_number
            )
            if not is_action_allowed(allowed, action):
                _LOGGER.info(
                    "%s: Ignoring request to set device to value %s. Action %s "
                    "not allowed in current device state. Allowed actions: %s",
                    serial_number,
                    requested,
                    action.as_payload(),
                    allowed,
                )
                self._schedule_revert(serial_number, requested, current, revert)
                return DispatchOutcome.REJECTED

            _LOGGER.info("%s: Sending action %s", serial_number, action.as_payload())
            return await self._async_put(
                serial_number, action.as_payload(), requested, current, revert
            )
        except api.MieleApiClientError:
            _LOGGER.exception("%s: API error while sending action", serial_number)
        except httpx.RequestError:
            _LOGGER.exception(
                "%s: Connection error while sending action", serial_number
            )

        self._schedule_revert(serial_number, requested, current, revert)
        return DispatchOutcome.FAILED

    async def async_set_target_temperature(
        self,
        serial_number: str,
        zone: int,
        requested: float,
        current: float,
        revert: Callable[[], None],
        *,
        disable_flag: bool = False,
    ) -> DispatchOutcome:
        """Write a target temperature for one zone, reverting on refusal."""
        if disable_flag:
            _LOGGER.info("%s: Ignoring target temperature request", serial_number)
            self._schedule_revert(serial_number, requested, current, revert)
            return DispatchOutcome.DISABLED

        authorization = self._token_manager.get_access_token()
        try:
            allowed = await api.async_get_actions(
                self._session, authorization, serial_number
            )
            if not is_zone_allowed(allowed, zone):
                _LOGGER.info(
                    "%s: Target temperature of zone %s cannot be changed now",
                    serial_number,
                    zone,
                )
                self._schedule_revert(serial_number, requested, current, revert)
                return DispatchOutcome.REJECTED

            payload = {"targetTemperature": [{"zone": zone, "value": requested}]}
            return await self._async_put(
                serial_number, payload, requested, current, revert
            )
        except api.MieleApiClientError:
            _LOGGER.exception(
                "%s: API error while setting target temperature", serial_number
            )
        except httpx.RequestError:
            _LOGGER.exception(
                "%s: Connection error while setting target temperature", serial_number
            )

        self._schedule_revert(serial_number, requested, current, revert)
        return DispatchOutcome.FAILED

    async def _async_put(
        self,
        serial_number: str,
        payload: dict[str, Any],
        requested: Any,  # noqa: ANN401
        current: Any,  # noqa: ANN401
        revert: Callable[[], None],
    ) -> DispatchOutcome:
        try:
            await api.async_put_action(
                self._session,
                self._token_manager.get_access_token(),
                serial_number,
                payload,
            )
        except api.MieleApiClientError as err:
            if err.status_code != HTTP_INTERNAL_SERVER_ERROR:
                raise
            # Applied by the appliance despite the status code.
            _LOGGER.warning(
                "%s: Action %s acknowledged with status %s, assuming it was applied",
                serial_number,
                payload,
                err.status_code,
            )
        return DispatchOutcome.SENT

    async def async_get_target_temperature_range(
        self, serial_number: str, zone: int
    ) -> tuple[float, float] | None:
        """Return the writable range of a zone, or None if unavailable."""
        try:
            allowed = await api.async_get_actions(
                self._session, self._token_manager.get_access_token(), serial_number
            )
        except (api.MieleApiClientError, httpx.RequestError) as err:
            _LOGGER.warning(
                "%s: Could not retrieve target temperature range: %s",
                serial_number,
                err,
            )
            return None

        try:
            for entry in allowed.get("targetTemperature") or []:
                if entry.get("zone") == zone and "min" in entry and "max" in entry:
                    return float(entry["min"]), float(entry["max"])
        except (AttributeError, KeyError, TypeError, ValueError):
            _LOGGER.warning(
                "%s: Invalid target temperature range for zone %s: %s",
                serial_number,
                zone,
                allowed,
            )
            return None

        _LOGGER.debug(
            "%s: No target temperature range for zone %s", serial_number, zone
        )
        return None
