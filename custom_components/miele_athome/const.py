"""Constants for the Miele@home integration.

This module contains all the constants used throughout the integration,
including API endpoints, configuration keys, Miele state codes and the
HomeKit characteristic values published to the hub.
"""

from enum import IntEnum

DOMAIN = "miele_athome"
PLATFORM_NAME = "Miele@home"

BASE_URL = "https://api.mcs3.miele.com"
DEVICES_URL = f"{BASE_URL}/v1/devices"
TOKEN_URL = f"{BASE_URL}/thirdparty/token"

# Item name used to store the API token on persistent storage.
TOKEN_STORAGE_NAME = f"{PLATFORM_NAME}.Token.json"
TOKEN_STORAGE_VERSION = 1

TOKEN_REFRESH_CHECK_INTERVAL = 1800  # Seconds between token expiry checks
REVERT_ACTIVATE_REQUEST_DELAY = 0.5  # Seconds before undoing a rejected write
STREAM_RECONNECT_DELAY = 60  # Seconds to wait before reconnecting
STREAM_STAGGER_STEP = 1  # Extra seconds per accessory constructed
DEFAULT_RECONNECT_INTERVAL = 3600  # Forced reconnect of the event stream
DEFAULT_POLL_INTERVAL = 0  # Disabled, the event stream keeps the cache fresh

# Remote quirk: some writes are acknowledged with 500 although applied.
HTTP_INTERNAL_SERVER_ERROR = 500

# Raw temperature value reported when a zone has no reading.
TEMPERATURE_NULL_VALUE = -32768

CONF_CLIENT_ID = "client_id"
CONF_CLIENT_SECRET = "client_secret"
CONF_TOKEN = "token"
CONF_REFRESH_TOKEN = "refresh_token"
CONF_DISABLE_STOP_ACTION = "disable_stop_action"
CONF_DISABLE_CHANGE_TARGET_TEMPERATURE = "disable_change_target_temperature"
CONF_DISABLE_TEMPERATURE_SENSOR = "disable_temperature_sensor"
CONF_POLL_INTERVAL = "poll_interval"
CONF_RECONNECT_INTERVAL = "reconnect_interval"

ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_INVALID_AUTH = "invalid_auth"
ERROR_TIMEOUT = "timeout_error"
ERROR_API_ERROR = "api_error"
ERROR_UNKNOWN = "unknown_error"

DATA_TOKEN_MANAGER = "token_manager"
DATA_TOKEN_LOCK = "token_lock"

SIGNAL_CHARACTERISTIC_UPDATED = f"{DOMAIN}_characteristic_updated_{{}}"


class DeviceType(IntEnum):
    """Raw device type codes reported in ``ident.type.value_raw``."""

    WASHER = 1
    DRYER = 2
    DISHWASHER = 7
    COFFEE_SYSTEM = 17
    HOOD = 18
    FRIDGE = 19
    FREEZER = 20
    FRIDGE_FREEZER = 21
    WASHER_DRYER = 24
    HOB = 27
    HOB_VAPOUR = 74


class MieleState(IntEnum):
    """Primary status codes reported in ``state.status.value_raw``."""

    OFF = 1
    ON = 2
    PROGRAMMED = 3
    PROGRAMMED_WAITING_TO_START = 4
    RUNNING = 5
    PAUSE = 6
    END_PROGRAMMED = 7
    FAILURE = 8
    PROGRAMME_INTERRUPTED = 9
    IDLE = 10
    RINSE_HOLD = 11
    SERVICE = 12
    SUPERFREEZING = 13
    SUPERCOOLING = 14
    SUPERHEATING = 15
    NOT_CONNECTED = 255


class ProcessAction(IntEnum):
    """Codes accepted under ``processAction`` by the actions resource."""

    START = 1
    STOP = 2
    PAUSE = 3


class LightAction(IntEnum):
    """Codes accepted under ``light`` by the actions resource."""

    ON = 1
    OFF = 2


# HomeKit characteristic values.
ACTIVE_INACTIVE = 0
ACTIVE_ACTIVE = 1
IN_USE_NOT_IN_USE = 0
IN_USE_IN_USE = 1
HEATING_COOLING_OFF = 0
HEATING_COOLING_COOL = 2
DISPLAY_UNITS_CELSIUS = 0
DISPLAY_UNITS_FAHRENHEIT = 1

TEMPERATURE_UNIT_MAP = {
    "Celsius": DISPLAY_UNITS_CELSIUS,
    "Fahrenheit": DISPLAY_UNITS_FAHRENHEIT,
}

# HomeKit CurrentTemperature bounds.
CURRENT_TEMPERATURE_RANGE = (-270.0, 100.0)
REMAINING_DURATION_RANGE = (0, 86400)
ROTATION_SPEED_RANGE = (0, 100)
ROTATION_SPEED_STEP = 25

# Used when the actions resource cannot report a target temperature range.
DEFAULT_TARGET_TEMPERATURE_RANGE = {
    DeviceType.FRIDGE: (1.0, 9.0),
    DeviceType.FREEZER: (-26.0, -16.0),
    DeviceType.FRIDGE_FREEZER: (1.0, 9.0),
}
