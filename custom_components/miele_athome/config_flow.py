"""
Configuration flow for Miele@home integration.

This module collects the OAuth client credentials and the initial token
pair, and validates them against the device listing before creating the
config entry.
"""

import logging
from typing import Any

import httpx
import voluptuous as vol
from homeassistant.config_entries import ConfigFlow, ConfigFlowResult
from homeassistant.helpers.httpx_client import get_async_client

from . import api
from .const import (
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_DISABLE_CHANGE_TARGET_TEMPERATURE,
    CONF_DISABLE_STOP_ACTION,
    CONF_DISABLE_TEMPERATURE_SENSOR,
    CONF_POLL_INTERVAL,
    CONF_RECONNECT_INTERVAL,
    CONF_REFRESH_TOKEN,
    CONF_TOKEN,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RECONNECT_INTERVAL,
    DOMAIN,
    ERROR_API_ERROR,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_TIMEOUT,
    ERROR_UNKNOWN,
    PLATFORM_NAME,
)

_LOGGER = logging.getLogger(__name__)

DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_CLIENT_ID): str,
        vol.Required(CONF_CLIENT_SECRET): str,
        vol.Required(CONF_TOKEN): str,
        vol.Required(CONF_REFRESH_TOKEN): str,
        vol.Optional(CONF_DISABLE_STOP_ACTION, default=False): bool,
        vol.Optional(CONF_DISABLE_CHANGE_TARGET_TEMPERATURE, default=False): bool,
        vol.Optional(CONF_DISABLE_TEMPERATURE_SENSOR, default=False): bool,
        vol.Optional(CONF_POLL_INTERVAL, default=DEFAULT_POLL_INTERVAL): vol.All(
            vol.Coerce(int), vol.Range(min=0)
        ),
        vol.Optional(
            CONF_RECONNECT_INTERVAL, default=DEFAULT_RECONNECT_INTERVAL
        ): vol.All(vol.Coerce(int), vol.Range(min=60)),
    }
)


class MieleAtHomeConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle configuration flow for Miele@home integration."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """
        Handle the initial step of the config flow.

        Args:
            user_input: Client credentials, token pair and per-device options.

        Returns:
            ConfigFlowResult indicating the next step or errors.

        """
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                session = get_async_client(self.hass)
                devices = await api.async_get_devices(
                    session, f"Bearer {user_input[CONF_TOKEN]}"
                )
                _LOGGER.info(
                    "Successfully validated token, %d devices found", len(devices)
                )

            except api.MieleApiAuthError as err:
                _LOGGER.warning(
                    "Authentication failed (%s): %s", ERROR_INVALID_AUTH, err
                )
                errors["base"] = ERROR_INVALID_AUTH
            except httpx.ConnectError:
                _LOGGER.exception("Connection error (%s)", ERROR_CANNOT_CONNECT)
                errors["base"] = ERROR_CANNOT_CONNECT
            except httpx.TimeoutException:
                _LOGGER.exception("Timeout error (%s)", ERROR_TIMEOUT)
                errors["base"] = ERROR_TIMEOUT
            except api.MieleApiClientError:
                _LOGGER.exception("API client error (%s)", ERROR_API_ERROR)
                errors["base"] = ERROR_API_ERROR
            except Exception:
                _LOGGER.exception(
                    "Unexpected error during validation (%s)",
                    ERROR_UNKNOWN,
                )
                errors["base"] = ERROR_UNKNOWN

            else:
                await self.async_set_unique_id(user_input[CONF_CLIENT_ID])
                self._abort_if_unique_id_configured()

                return self.async_create_entry(
                    title=PLATFORM_NAME,
                    data=dict(user_input),
                )

        return self.async_show_form(
            step_id="user",
            data_schema=DATA_SCHEMA,
            errors=errors,
        )
