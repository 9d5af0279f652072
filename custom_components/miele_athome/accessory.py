"""Accessory wiring for one Miele appliance."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

import httpx
from homeassistant.helpers.dispatcher import async_dispatcher_send

from . import api
from .actions import MieleActionDispatcher
from .const import SIGNAL_CHARACTERISTIC_UPDATED
from .registry import build_characteristics
from .stream import MieleStreamConnection

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .auth import MieleTokenManager
    from .characteristics import MieleCharacteristic
    from .models import DeviceIdentity, DeviceStatus
    from .registry import AccessoryOptions, Composition

_LOGGER = logging.getLogger(__name__)


class MieleAccessory:
    """Owns the characteristics, event stream and actions of one appliance.

    Published values are sent to the hub as dispatcher signals scoped to
    the appliance's unique id.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        session: httpx.AsyncClient,
        token_manager: MieleTokenManager,
        identity: DeviceIdentity,
        composition: Composition,
        options: AccessoryOptions,
    ) -> None:
        """Initialize the accessory and compose its characteristics."""
        self._hass = hass
        self._session = session
        self._token_manager = token_manager
        self.identity = identity
        self.composition = composition
        self._options = options
        self._poll_task: asyncio.Task[None] | None = None

        self.dispatcher = MieleActionDispatcher(session, token_manager)
        self.characteristics: dict[str, MieleCharacteristic] = {
            characteristic.name: characteristic
            for characteristic in build_characteristics(
                composition,
                self._publish,
                self.dispatcher,
                identity.unique_id,
                identity.device_type_code,
                options,
            )
        }
        self.stream = MieleStreamConnection(
            session,
            token_manager,
            identity.unique_id,
            self.handle_device_update,
            reconnect_interval=options.reconnect_interval,
        )

    @property
    def signal(self) -> str:
        """Return the dispatcher signal carrying this accessory's updates."""
        return SIGNAL_CHARACTERISTIC_UPDATED.format(self.identity.unique_id)

    def _publish(self, name: str, value: Any) -> None:  # noqa: ANN401
        async_dispatcher_send(self._hass, self.signal, name, value)

    def get(self, name: str) -> Any:  # noqa: ANN401
        """Return the cached value of a characteristic."""
        return self.characteristics[name].get()

    def set(self, name: str, value: Any) -> None:  # noqa: ANN401
        """Forward a value from the hub to a characteristic."""
        self.characteristics[name].set(value)

    def handle_device_update(self, status: DeviceStatus) -> None:
        """Feed telemetry to every characteristic."""
        for characteristic in self.characteristics.values():
            characteristic.update(status)

    async def async_setup(self) -> None:
        """Load writable ranges, connect the event stream and start polling."""
        _LOGGER.info(
            "Setting up %s %s (%s)",
            self.composition.kind,
            self.identity.display_name,
            self.identity.unique_id,
        )
        for characteristic in self.characteristics.values():
            await characteristic.async_load_range()

        await self.stream.async_connect()

        if self._options.poll_interval > 0:
            self._poll_task = asyncio.create_task(self._async_poll_loop())

    async def async_teardown(self) -> None:
        """Stop all background work of this accessory."""
        await self.stream.async_disconnect()

        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None

        await self.dispatcher.async_cancel()
        _LOGGER.debug("Tore down accessory %s", self.identity.unique_id)

    async def async_poll(self) -> None:
        """Fetch the device state once and update the characteristics."""
        try:
            status = await api.async_get_state(
                self._session,
                self._token_manager.get_access_token(),
                self.identity.unique_id,
            )
        except api.MieleApiClientError as err:
            _LOGGER.error(
                "API error while polling %s: %s", self.identity.unique_id, err
            )
            return
        except httpx.RequestError as err:
            _LOGGER.error(
                "Connection error while polling %s: %s", self.identity.unique_id, err
            )
            return
        except (AttributeError, KeyError, TypeError, ValueError):
            _LOGGER.warning(
                "Invalid state received while polling %s", self.identity.unique_id
            )
            return

        self.handle_device_update(status)

    async def _async_poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._options.poll_interval)
            await self.async_poll()
