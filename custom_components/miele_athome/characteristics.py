"""Characteristic caches for Miele@home accessories.

A characteristic is one value the hub shows for an appliance. Reads are
always answered from the cache, the event stream keeps the cache fresh.
Variants differ only in the strategies handed to ``MieleCharacteristic``.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from .const import (
    CURRENT_TEMPERATURE_RANGE,
    DISPLAY_UNITS_CELSIUS,
    REMAINING_DURATION_RANGE,
    ROTATION_SPEED_RANGE,
    ROTATION_SPEED_STEP,
    TEMPERATURE_UNIT_MAP,
    LightAction,
)
from .models import RemoteAction

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Collection, Mapping

    from .actions import MieleActionDispatcher
    from .models import DeviceStatus

_LOGGER = logging.getLogger(__name__)

# Returned by a derive strategy when the appliance reports "no value".
NO_VALUE = object()


class CharacteristicKind(StrEnum):
    """Capability set of a characteristic."""

    READ_ONLY = "read_only"
    BINARY_WRITABLE = "binary_writable"
    NUMERIC_WRITABLE = "numeric_writable"


class MieleCharacteristic:
    """Cached characteristic value with change detection.

    ``derive`` maps telemetry to a value, ``None`` meaning "no reading".
    ``writer`` schedules the network part of a write and must not block.
    """

    def __init__(
        self,
        name: str,
        kind: CharacteristicKind,
        derive: Callable[[DeviceStatus], Any],
        publish: Callable[[str, Any], None],
        *,
        initial: Any = 0,  # noqa: ANN401
        off_value: Any = 0,  # noqa: ANN401
        value_range: tuple[float, float] | None = None,
        writer: Callable[[MieleCharacteristic, Any], None] | None = None,
        range_loader: Callable[[], Awaitable[tuple[float, float] | None]]
        | None = None,
    ) -> None:
        """Initialize the characteristic.

        Raises:
            ValueError: If a writable kind has no writer or a read-only one has.

        """
        if (kind is CharacteristicKind.READ_ONLY) != (writer is None):
            error_msg = f"Characteristic {name} of kind {kind} has mismatching writer"
            raise ValueError(error_msg)

        self._name = name
        self._kind = kind
        self._derive = derive
        self._publish = publish
        self._off_value = off_value
        self._value_range = value_range
        self._writer = writer
        self._range_loader = range_loader
        self._value = initial
        self._last_published: Any = None

    @property
    def name(self) -> str:
        """Return the characteristic name."""
        return self._name

    @property
    def kind(self) -> CharacteristicKind:
        """Return the capability set."""
        return self._kind

    @property
    def value_range(self) -> tuple[float, float] | None:
        """Return the declared [min, max] range."""
        return self._value_range

    @property
    def last_published(self) -> Any:  # noqa: ANN401
        """Return the value the hub was last told about."""
        return self._last_published

    def get(self) -> Any:  # noqa: ANN401
        """Return the cached value. Never performs I/O."""
        return self._value

    def update(self, status: DeviceStatus) -> None:
        """Derive a new value from telemetry and publish it if it changed."""
        value = self._derive(status)
        if value is None:
            return
        value = self._off_value if value is NO_VALUE else self._clip(value)

        self._value = value
        if value == self._last_published:
            return

        _LOGGER.debug("Parsed %s from API response: %s", self._name, value)
        self._last_published = value
        self._publish(self._name, value)

    def set(self, value: Any) -> None:  # noqa: ANN401
        """Accept a value from the hub; the remote write happens in the background."""
        if self._writer is None:
            _LOGGER.error("Attempt to set %s characteristic. Ignored", self._name)
            return

        _LOGGER.debug("Set characteristic %s to: %s", self._name, value)
        self._last_published = value
        self._writer(self, value)

    def revert(self) -> None:
        """Publish the cached value again, undoing an optimistic write."""
        self._last_published = self._value
        self._publish(self._name, self._value)

    async def async_load_range(self) -> None:
        """Query the writable range once, keeping the default on failure."""
        if self._range_loader is None:
            return
        value_range = await self._range_loader()
        if value_range is None:
            _LOGGER.debug(
                "Using default range %s for %s", self._value_range, self._name
            )
            return
        self._value_range = value_range

    def _clip(self, value: Any) -> Any:  # noqa: ANN401
        if self._value_range is None or isinstance(value, bool):
            return value
        low, high = self._value_range
        return min(max(value, low), high)


def _status_deriver(
    name: str,
    off_value: Any,  # noqa: ANN401
    on_value: Any,  # noqa: ANN401
    inactive_states: Collection[int] | None,
    active_states: Collection[int] | None,
) -> Callable[[DeviceStatus], Any]:
    """Build an on/off mapping from exactly one of two status sets.

    Raises:
        ValueError: If both or neither set is supplied.

    """
    if (inactive_states is None) == (active_states is None):
        error_msg = (
            f"{name}: exactly one of inactive or active states must be supplied"
        )
        raise ValueError(error_msg)

    def derive(status: DeviceStatus) -> Any:  # noqa: ANN401
        if status.status is None:
            return None
        if inactive_states is not None:
            return off_value if status.status in inactive_states else on_value
        return on_value if status.status in active_states else off_value

    return derive


def binary_state(
    name: str,
    publish: Callable[[str, Any], None],
    *,
    off_value: Any,  # noqa: ANN401
    on_value: Any,  # noqa: ANN401
    inactive_states: Collection[int] | None = None,
    active_states: Collection[int] | None = None,
) -> MieleCharacteristic:
    """Read-only on/off characteristic derived from the primary status."""
    return MieleCharacteristic(
        name,
        CharacteristicKind.READ_ONLY,
        _status_deriver(name, off_value, on_value, inactive_states, active_states),
        publish,
        initial=off_value,
        off_value=off_value,
    )


def _action_writer(
    dispatcher: MieleActionDispatcher,
    serial_number: str,
    action_table: Mapping[Any, RemoteAction],
    *,
    off_value: Any,  # noqa: ANN401
    disable_flag: bool = False,
) -> Callable[[MieleCharacteristic, Any], None]:
    def write(characteristic: MieleCharacteristic, value: Any) -> None:  # noqa: ANN401
        dispatcher.submit(
            dispatcher.async_dispatch(
                serial_number,
                value,
                characteristic.get(),
                action_table,
                characteristic.revert,
                disable_flag=disable_flag,
                disabling_value=off_value,
            )
        )

    return write


def binary_control(
    name: str,
    publish: Callable[[str, Any], None],
    dispatcher: MieleActionDispatcher,
    serial_number: str,
    action_table: Mapping[Any, RemoteAction],
    *,
    off_value: Any,  # noqa: ANN401
    on_value: Any,  # noqa: ANN401
    inactive_states: Collection[int] | None = None,
    active_states: Collection[int] | None = None,
    disable_flag: bool = False,
) -> MieleCharacteristic:
    """Writable on/off characteristic backed by remote actions."""
    return MieleCharacteristic(
        name,
        CharacteristicKind.BINARY_WRITABLE,
        _status_deriver(name, off_value, on_value, inactive_states, active_states),
        publish,
        initial=off_value,
        off_value=off_value,
        writer=_action_writer(
            dispatcher,
            serial_number,
            action_table,
            off_value=off_value,
            disable_flag=disable_flag,
        ),
    )


def light(
    name: str,
    publish: Callable[[str, Any], None],
    dispatcher: MieleActionDispatcher,
    serial_number: str,
) -> MieleCharacteristic:
    """Writable light switch of a hood."""
    action_table = {
        True: RemoteAction("light", LightAction.ON),
        False: RemoteAction("light", LightAction.OFF),
    }

    def derive(status: DeviceStatus) -> bool | None:
        if status.light is None:
            return None
        return status.light == LightAction.ON

    return MieleCharacteristic(
        name,
        CharacteristicKind.BINARY_WRITABLE,
        derive,
        publish,
        initial=False,
        off_value=False,
        writer=_action_writer(
            dispatcher, serial_number, action_table, off_value=False
        ),
    )


def fan_running(name: str, publish: Callable[[str, Any], None]) -> MieleCharacteristic:
    """Read-only fan state from the ventilation step."""

    def derive(status: DeviceStatus) -> bool | None:
        if status.ventilation_step is None:
            return None
        return status.ventilation_step > 0

    return MieleCharacteristic(
        name,
        CharacteristicKind.READ_ONLY,
        derive,
        publish,
        initial=False,
        off_value=False,
    )


def remaining_duration(
    name: str, publish: Callable[[str, Any], None]
) -> MieleCharacteristic:
    """Remaining program time in seconds."""

    def derive(status: DeviceStatus) -> int:
        hours, minutes = status.remaining_time
        return hours * 3600 + minutes * 60

    return MieleCharacteristic(
        name,
        CharacteristicKind.READ_ONLY,
        derive,
        publish,
        value_range=REMAINING_DURATION_RANGE,
    )


def rotation_speed(
    name: str, publish: Callable[[str, Any], None]
) -> MieleCharacteristic:
    """Fan speed in percent, one ventilation step per quarter."""

    def derive(status: DeviceStatus) -> int | None:
        if status.ventilation_step is None:
            return None
        return status.ventilation_step * ROTATION_SPEED_STEP

    return MieleCharacteristic(
        name,
        CharacteristicKind.READ_ONLY,
        derive,
        publish,
        value_range=ROTATION_SPEED_RANGE,
    )


def _temperature_deriver(
    zone: int, *, target: bool
) -> Callable[[DeviceStatus], Any]:
    """Read zone (1-based) from the current or target temperature array."""

    def derive(status: DeviceStatus) -> Any:  # noqa: ANN401
        readings = status.target_temperature if target else status.temperature
        if len(readings) < zone:
            return None
        reading = readings[zone - 1]
        if reading.is_null:
            return NO_VALUE
        return reading.value_raw / 100.0  # Miele reports 1/100 degree

    return derive


def temperature(
    name: str,
    publish: Callable[[str, Any], None],
    *,
    zone: int = 1,
    target: bool = False,
    off_value: float = 0,
    value_range: tuple[float, float] | None = CURRENT_TEMPERATURE_RANGE,
) -> MieleCharacteristic:
    """Read-only temperature of one zone."""
    return MieleCharacteristic(
        name,
        CharacteristicKind.READ_ONLY,
        _temperature_deriver(zone, target=target),
        publish,
        initial=off_value,
        off_value=off_value,
        value_range=value_range,
    )


def temperature_unit(
    name: str, publish: Callable[[str, Any], None]
) -> MieleCharacteristic:
    """Display unit of the first temperature zone."""

    def derive(status: DeviceStatus) -> int | None:
        if not status.temperature:
            return None
        return TEMPERATURE_UNIT_MAP.get(
            status.temperature[0].unit, DISPLAY_UNITS_CELSIUS
        )

    return MieleCharacteristic(
        name,
        CharacteristicKind.READ_ONLY,
        derive,
        publish,
        initial=DISPLAY_UNITS_CELSIUS,
    )


def target_temperature(
    name: str,
    publish: Callable[[str, Any], None],
    dispatcher: MieleActionDispatcher,
    serial_number: str,
    *,
    zone: int,
    default_range: tuple[float, float],
    off_value: float = 0,
    disable_flag: bool = False,
) -> MieleCharacteristic:
    """Writable target temperature of one zone."""

    def write(characteristic: MieleCharacteristic, value: float) -> None:
        dispatcher.submit(
            dispatcher.async_set_target_temperature(
                serial_number,
                zone,
                value,
                characteristic.get(),
                characteristic.revert,
                disable_flag=disable_flag,
            )
        )

    async def load_range() -> tuple[float, float] | None:
        return await dispatcher.async_get_target_temperature_range(serial_number, zone)

    return MieleCharacteristic(
        name,
        CharacteristicKind.NUMERIC_WRITABLE,
        _temperature_deriver(zone, target=True),
        publish,
        initial=off_value,
        off_value=off_value,
        value_range=default_range,
        writer=write,
        range_loader=load_range,
    )
