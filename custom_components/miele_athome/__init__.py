from __future__ import annotations

import logging

import httpx
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback

from . import api
from .accessory import MieleAccessory
from .api import create_session_client
from .auth import async_get_token_manager
from .const import CONF_TOKEN, DATA_TOKEN_LOCK, DATA_TOKEN_MANAGER, DOMAIN
from .registry import AccessoryOptions, classify
from .store import TokenStore

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Setting up Miele@home integration for entry %s", entry.entry_id)

    if CONF_TOKEN not in entry.data:
        _LOGGER.error("Missing token in configuration for entry %s", entry.entry_id)
        return False

    session = create_session_client(hass)
    token_manager = await async_get_token_manager(
        hass, session, TokenStore(hass), entry.data, entry
    )
    # A failed refresh is logged by the coordinator and retried next tick.
    await token_manager.async_refresh()

    @callback
    def _token_updated() -> None:
        _LOGGER.debug("Access token updated for entry %s", entry.entry_id)

    # The coordinator only keeps its refresh schedule while it has listeners.
    entry.async_on_unload(token_manager.async_add_listener(_token_updated))

    try:
        _LOGGER.debug("Fetching devices from Miele API")
        devices = await api.async_get_devices(
            session, token_manager.get_access_token()
        )
        _LOGGER.info("Successfully retrieved %d devices from Miele API", len(devices))
    except api.MieleApiAuthError as err:
        _LOGGER.warning(
            "Authentication failed for entry %s: %s", entry.entry_id, str(err)
        )
        return False
    except api.MieleApiClientError as err:
        _LOGGER.error("API client error for entry %s: %s", entry.entry_id, str(err))
        return False
    except httpx.ConnectError as err:
        _LOGGER.error("Connection error for entry %s: %s", entry.entry_id, str(err))
        return False
    except httpx.TimeoutException as err:
        _LOGGER.error("Timeout error for entry %s: %s", entry.entry_id, str(err))
        return False
    except Exception as err:
        _LOGGER.exception(
            "Unexpected error during setup for entry %s: %s", entry.entry_id, err
        )
        return False

    options = AccessoryOptions.from_config(entry.data)
    accessories: list[MieleAccessory] = []
    try:
        for identity in devices:
            composition = classify(identity.device_type_code)
            if composition is None:
                continue
            accessory = MieleAccessory(
                hass, session, token_manager, identity, composition, options
            )
            accessories.append(accessory)
            await accessory.async_setup()
    except Exception:
        _LOGGER.exception(
            "Unexpected error while setting up accessories for entry %s",
            entry.entry_id,
        )
        for accessory in accessories:
            await accessory.async_teardown()
        return False

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "session": session,
        "token_manager": token_manager,
        "accessories": accessories,
    }
    _LOGGER.info(
        "Successfully setup Miele@home integration for entry %s: %d accessories",
        entry.entry_id,
        len(accessories),
    )
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info("Unloading Miele@home integration for entry %s", entry.entry_id)

    domain_data = hass.data.get(DOMAIN, {})
    entry_data = domain_data.pop(entry.entry_id, None)
    if entry_data is None:
        _LOGGER.warning("No data to unload for entry %s", entry.entry_id)
        return True

    for accessory in entry_data["accessories"]:
        await accessory.async_teardown()
    _LOGGER.debug("Cleaned up data for entry %s", entry.entry_id)

    if not set(domain_data) - {DATA_TOKEN_MANAGER, DATA_TOKEN_LOCK}:
        # Last entry gone, the next setup loads the token from storage again.
        domain_data.pop(DATA_TOKEN_MANAGER, None)

    _LOGGER.info(
        "Successfully unloaded Miele@home integration for entry %s", entry.entry_id
    )
    return True
