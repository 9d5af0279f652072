"""Tests for the Miele@home device registry."""

from unittest.mock import Mock

import pytest

from custom_components.miele_athome.characteristics import CharacteristicKind
from custom_components.miele_athome.const import (
    CONF_DISABLE_STOP_ACTION,
    CONF_DISABLE_TEMPERATURE_SENSOR,
    CONF_POLL_INTERVAL,
    DEFAULT_RECONNECT_INTERVAL,
    HEATING_COOLING_OFF,
    DeviceType,
)
from custom_components.miele_athome.registry import (
    COOLER,
    HOB,
    HOB_VAPOUR,
    HOOD,
    WASHER,
    AccessoryOptions,
    build_characteristics,
    classify,
)

SERIAL_NUMBER = "000123456789"


def names(composition, device_type, options=None) -> list[str]:
    """Build a composition and return its characteristic names."""
    built = build_characteristics(
        composition,
        Mock(),
        Mock(),
        SERIAL_NUMBER,
        device_type,
        options or AccessoryOptions(),
    )
    return [characteristic.name for characteristic in built]


class TestClassify:
    """Tests for classify."""

    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            (1, WASHER),
            (2, WASHER),
            (7, WASHER),
            (24, WASHER),
            (19, COOLER),
            (20, COOLER),
            (21, COOLER),
            (18, HOOD),
            (27, HOB),
            (74, HOB_VAPOUR),
        ],
    )
    def test_supported_codes(self, code: int, expected: object) -> None:
        """Test that supported device types map to their composition."""
        assert classify(code) is expected

    def test_coffee_system_exposes_switch(self) -> None:
        """Test that coffee systems are exposed as a switch."""
        composition = classify(DeviceType.COFFEE_SYSTEM)
        assert composition is not None
        assert composition.services == ("switch",)

    def test_unknown_code_returns_none(self) -> None:
        """Test that unsupported device types are skipped."""
        assert classify(12) is None


class TestBuildCharacteristics:
    """Tests for build_characteristics."""

    def test_washer(self) -> None:
        """Test the washer composition."""
        assert names(WASHER, DeviceType.WASHER) == [
            "valve.active",
            "valve.in_use",
            "valve.remaining_duration",
        ]

    def test_cooler(self) -> None:
        """Test the fridge composition."""
        assert names(COOLER, DeviceType.FRIDGE) == [
            "thermostat.current_heating_cooling_state",
            "thermostat.target_heating_cooling_state",
            "thermostat.current_temperature",
            "thermostat.target_temperature",
            "thermostat.temperature_display_units",
        ]

    def test_cooler_without_temperature_sensor(self) -> None:
        """Test that the temperature sensor can be disabled."""
        options = AccessoryOptions(disable_temperature_sensor=True)
        assert "thermostat.current_temperature" not in names(
            COOLER, DeviceType.FREEZER, options
        )

    def test_freezer_default_target_range(self) -> None:
        """Test that freezers default to their own target range."""
        built = build_characteristics(
            COOLER,
            Mock(),
            Mock(),
            SERIAL_NUMBER,
            DeviceType.FREEZER,
            AccessoryOptions(),
        )
        target = next(c for c in built if c.name == "thermostat.target_temperature")
        assert target.kind is CharacteristicKind.NUMERIC_WRITABLE
        assert target.value_range == (-26.0, -16.0)

    @pytest.mark.parametrize(
        ("options", "disabled"),
        [
            (AccessoryOptions(disable_change_target_temperature=True), True),
            (AccessoryOptions(disable_stop_action=True), False),
        ],
    )
    def test_cooler_target_state_follows_target_temperature_flag(
        self, options: AccessoryOptions, disabled: bool
    ) -> None:
        """Test that switching the fridge off obeys the target temperature flag."""
        dispatcher = Mock()
        built = build_characteristics(
            COOLER, Mock(), dispatcher, SERIAL_NUMBER, DeviceType.FRIDGE, options
        )
        target_state = next(
            c for c in built if c.name == "thermostat.target_heating_cooling_state"
        )

        target_state.set(HEATING_COOLING_OFF)

        kwargs = dispatcher.async_dispatch.call_args.kwargs
        assert kwargs["disable_flag"] is disabled
        assert kwargs["disabling_value"] == HEATING_COOLING_OFF

    def test_hood(self) -> None:
        """Test the hood composition."""
        assert names(HOOD, DeviceType.HOOD) == [
            "fan.on",
            "fan.rotation_speed",
            "light.on",
        ]

    def test_hob_with_vapour_extraction(self) -> None:
        """Test that code 74 adds the fan to the hob outlet."""
        assert names(HOB, DeviceType.HOB) == ["outlet.on"]
        assert names(HOB_VAPOUR, DeviceType.HOB_VAPOUR) == [
            "outlet.on",
            "fan.on",
            "fan.rotation_speed",
        ]


class TestAccessoryOptions:
    """Tests for AccessoryOptions.from_config."""

    def test_from_config_reads_flags(self) -> None:
        """Test that flags and intervals are read from config data."""
        options = AccessoryOptions.from_config(
            {
                CONF_DISABLE_STOP_ACTION: True,
                CONF_DISABLE_TEMPERATURE_SENSOR: True,
                CONF_POLL_INTERVAL: 30,
            }
        )
        assert options.disable_stop_action is True
        assert options.disable_change_target_temperature is False
        assert options.disable_temperature_sensor is True
        assert options.poll_interval == 30
        assert options.reconnect_interval == DEFAULT_RECONNECT_INTERVAL
