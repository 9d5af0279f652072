"""Device type registry for Miele@home.

Maps the raw device type code of a discovered appliance to the services
and characteristics its accessory exposes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from . import characteristics as chars
from .const import (
    ACTIVE_ACTIVE,
    ACTIVE_INACTIVE,
    CONF_DISABLE_CHANGE_TARGET_TEMPERATURE,
    CONF_DISABLE_STOP_ACTION,
    CONF_DISABLE_TEMPERATURE_SENSOR,
    CONF_POLL_INTERVAL,
    CONF_RECONNECT_INTERVAL,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RECONNECT_INTERVAL,
    DEFAULT_TARGET_TEMPERATURE_RANGE,
    HEATING_COOLING_COOL,
    HEATING_COOLING_OFF,
    IN_USE_IN_USE,
    IN_USE_NOT_IN_USE,
    DeviceType,
    MieleState,
    ProcessAction,
)
from .models import RemoteAction

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .actions import MieleActionDispatcher
    from .characteristics import MieleCharacteristic

_LOGGER = logging.getLogger(__name__)

# Active
# 1 = Off
# 7 = Finished
# 9 = Programme interrupted
WASHER_INACTIVE_STATES = frozenset(
    {MieleState.OFF, MieleState.END_PROGRAMMED, MieleState.PROGRAMME_INTERRUPTED}
)
WASHER_IN_USE_STATES = frozenset({MieleState.RUNNING})
COOLING_STATES = frozenset(
    {MieleState.RUNNING, MieleState.SUPERCOOLING, MieleState.SUPERFREEZING}
)
POWERED_OFF_STATES = frozenset({MieleState.OFF, MieleState.NOT_CONNECTED})

PROCESS_ACTIONS = {
    ACTIVE_ACTIVE: RemoteAction("processAction", ProcessAction.START),
    ACTIVE_INACTIVE: RemoteAction("processAction", ProcessAction.STOP),
}
COOLING_ACTIONS = {
    HEATING_COOLING_COOL: RemoteAction("powerOn", True),  # noqa: FBT003
    HEATING_COOLING_OFF: RemoteAction("powerOff", True),  # noqa: FBT003
}
POWER_ACTIONS = {
    True: RemoteAction("powerOn", True),  # noqa: FBT003
    False: RemoteAction("powerOff", True),  # noqa: FBT003
}


@dataclass(frozen=True)
class AccessoryOptions:
    """Per-device behaviour switches taken from the configuration."""

    disable_stop_action: bool = False
    disable_change_target_temperature: bool = False
    disable_temperature_sensor: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> AccessoryOptions:
        """Build options from config entry data."""
        return cls(
            disable_stop_action=bool(config.get(CONF_DISABLE_STOP_ACTION, False)),
            disable_change_target_temperature=bool(
                config.get(CONF_DISABLE_CHANGE_TARGET_TEMPERATURE, False)
            ),
            disable_temperature_sensor=bool(
                config.get(CONF_DISABLE_TEMPERATURE_SENSOR, False)
            ),
            poll_interval=float(config.get(CONF_POLL_INTERVAL, DEFAULT_POLL_INTERVAL)),
            reconnect_interval=float(
                config.get(CONF_RECONNECT_INTERVAL, DEFAULT_RECONNECT_INTERVAL)
            ),
        )


@dataclass(frozen=True)
class CompositionContext:
    """Everything a composition needs to build its characteristics."""

    publish: Callable[[str, Any], None]
    dispatcher: MieleActionDispatcher
    serial_number: str
    device_type: DeviceType
    options: AccessoryOptions


@dataclass(frozen=True)
class Composition:
    """Services and characteristics exposed for one kind of appliance."""

    kind: str
    services: tuple[str, ...]
    build: Callable[[CompositionContext], list[MieleCharacteristic]]


def _build_washer(ctx: CompositionContext) -> list[MieleCharacteristic]:
    return [
        chars.binary_control(
            "valve.active",
            ctx.publish,
            ctx.dispatcher,
            ctx.serial_number,
            PROCESS_ACTIONS,
            off_value=ACTIVE_INACTIVE,
            on_value=ACTIVE_ACTIVE,
            inactive_states=WASHER_INACTIVE_STATES,
            disable_flag=ctx.options.disable_stop_action,
        ),
        chars.binary_state(
            "valve.in_use",
            ctx.publish,
            off_value=IN_USE_NOT_IN_USE,
            on_value=IN_USE_IN_USE,
            active_states=WASHER_IN_USE_STATES,
        ),
        chars.remaining_duration("valve.remaining_duration", ctx.publish),
    ]


def _build_cooler(ctx: CompositionContext) -> list[MieleCharacteristic]:
    result = [
        chars.binary_state(
            "thermostat.current_heating_cooling_state",
            ctx.publish,
            off_value=HEATING_COOLING_OFF,
            on_value=HEATING_COOLING_COOL,
            active_states=COOLING_STATES,
        ),
        chars.binary_control(
            "thermostat.target_heating_cooling_state",
            ctx.publish,
            ctx.dispatcher,
            ctx.serial_number,
            COOLING_ACTIONS,
            off_value=HEATING_COOLING_OFF,
            on_value=HEATING_COOLING_COOL,
            active_states=COOLING_STATES,
            disable_flag=ctx.options.disable_change_target_temperature,
        ),
    ]
    if not ctx.options.disable_temperature_sensor:
        result.append(
            chars.temperature("thermostat.current_temperature", ctx.publish, zone=1)
        )
    default_range = DEFAULT_TARGET_TEMPERATURE_RANGE[ctx.device_type]
    result.extend(
        [
            chars.target_temperature(
                "thermostat.target_temperature",
                ctx.publish,
                ctx.dispatcher,
                ctx.serial_number,
                zone=1,
                default_range=default_range,
                off_value=default_range[0],
                disable_flag=ctx.options.disable_change_target_temperature,
            ),
            chars.temperature_unit(
                "thermostat.temperature_display_units", ctx.publish
            ),
        ]
    )
    return result


def _build_hood(ctx: CompositionContext) -> list[MieleCharacteristic]:
    return [
        chars.binary_control(
            "fan.on",
            ctx.publish,
            ctx.dispatcher,
            ctx.serial_number,
            POWER_ACTIONS,
            off_value=False,
            on_value=True,
            inactive_states=POWERED_OFF_STATES,
            disable_flag=ctx.options.disable_stop_action,
        ),
        chars.rotation_speed("fan.rotation_speed", ctx.publish),
        chars.light("light.on", ctx.publish, ctx.dispatcher, ctx.serial_number),
    ]


def _build_power_switch(
    service: str,
) -> Callable[[CompositionContext], list[MieleCharacteristic]]:
    def build(ctx: CompositionContext) -> list[MieleCharacteristic]:
        return [
            chars.binary_control(
                f"{service}.on",
                ctx.publish,
                ctx.dispatcher,
                ctx.serial_number,
                POWER_ACTIONS,
                off_value=False,
                on_value=True,
                inactive_states=POWERED_OFF_STATES,
                disable_flag=ctx.options.disable_stop_action,
            )
        ]

    return build


def _build_hob_vapour(ctx: CompositionContext) -> list[MieleCharacteristic]:
    return [
        *_build_power_switch("outlet")(ctx),
        chars.fan_running("fan.on", ctx.publish),
        chars.rotation_speed("fan.rotation_speed", ctx.publish),
    ]


WASHER = Composition("washer", ("valve",), _build_washer)
COOLER = Composition("cooler", ("thermostat",), _build_cooler)
HOOD = Composition("hood", ("fan", "light"), _build_hood)
COFFEE_SYSTEM = Composition("coffee_system", ("switch",), _build_power_switch("switch"))
HOB = Composition("hob", ("outlet",), _build_power_switch("outlet"))
HOB_VAPOUR = Composition("hob_vapour", ("outlet", "fan"), _build_hob_vapour)

COMPOSITIONS: dict[DeviceType, Composition] = {
    DeviceType.WASHER: WASHER,
    DeviceType.DRYER: WASHER,
    DeviceType.DISHWASHER: WASHER,
    DeviceType.WASHER_DRYER: WASHER,
    DeviceType.FRIDGE: COOLER,
    DeviceType.FREEZER: COOLER,
    DeviceType.FRIDGE_FREEZER: COOLER,
    DeviceType.HOOD: HOOD,
    DeviceType.COFFEE_SYSTEM: COFFEE_SYSTEM,
    DeviceType.HOB: HOB,
    DeviceType.HOB_VAPOUR: HOB_VAPOUR,
}


def classify(device_type_code: int) -> Composition | None:
    """Return the composition for a raw device type, or None if unsupported."""
    try:
        device_type = DeviceType(device_type_code)
    except ValueError:
        _LOGGER.info("Unsupported device type %s", device_type_code)
        return None
    return COMPOSITIONS[device_type]


def build_characteristics(
    composition: Composition,
    publish: Callable[[str, Any], None],
    dispatcher: MieleActionDispatcher,
    serial_number: str,
    device_type_code: int,
    options: AccessoryOptions,
) -> list[MieleCharacteristic]:
    """Instantiate the characteristics of a composition for one appliance."""
    ctx = CompositionContext(
        publish=publish,
        dispatcher=dispatcher,
        serial_number=serial_number,
        device_type=DeviceType(device_type_code),
        options=options,
    )
    return composition.build(ctx)
