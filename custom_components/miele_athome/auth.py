"""OAuth token management for Miele@home integration."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from . import api
from .const import (
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_REFRESH_TOKEN,
    CONF_TOKEN,
    DATA_TOKEN_LOCK,
    DATA_TOKEN_MANAGER,
    DOMAIN,
    TOKEN_REFRESH_CHECK_INTERVAL,
    TOKEN_STORAGE_NAME,
)
from .models import TokenData

if TYPE_CHECKING:
    from collections.abc import Mapping

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .store import TokenStore

_LOGGER = logging.getLogger(__name__)


class MieleTokenManager(DataUpdateCoordinator[str]):
    """Coordinator owning the Miele OAuth token with automatic refresh.

    The coordinator data is the formatted bearer header. Readers call
    ``get_access_token`` which never performs I/O.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        session: httpx.AsyncClient,
        store: TokenStore,
        config: Mapping[str, Any],
        token_data: TokenData,
        config_entry: ConfigEntry | None = None,
        check_interval: float = TOKEN_REFRESH_CHECK_INTERVAL,
    ) -> None:
        """Initialize the token manager."""
        super().__init__(
            hass,
            _LOGGER,
            config_entry=config_entry,
            name=f"{DOMAIN}_token",
            update_interval=timedelta(seconds=check_interval),
        )
        self.session = session
        self._store = store
        self._config = config
        self._check_interval = check_interval
        self._token_data = token_data
        self.data = self.get_access_token()

    @classmethod
    async def async_create(
        cls,
        hass: HomeAssistant,
        session: httpx.AsyncClient,
        store: TokenStore,
        config: Mapping[str, Any],
        config_entry: ConfigEntry | None = None,
    ) -> MieleTokenManager:
        """Load the token from storage, falling back to configured values.

        Never raises: storage problems are logged and the configured token
        is used instead.
        """
        token_data = await _async_load_token(store)
        if token_data is None:
            _LOGGER.debug("No persistent token stored. Creating new from configuration")
            # Unknown issue date, so treat it as expiring right away.
            token_data = TokenData(
                access_token=config.get(CONF_TOKEN) or "",
                refresh_token=config.get(CONF_REFRESH_TOKEN) or "",
                expires_in=0,
                creation_date=datetime.now(UTC),
            )
            await _async_save_token(store, token_data)
        else:
            _LOGGER.debug("Token exists on disk")

        return cls(hass, session, store, config, token_data, config_entry)

    @property
    def token_data(self) -> TokenData:
        """Return the current token material."""
        return self._token_data

    def get_access_token(self) -> str:
        """Return the bearer header value for API requests."""
        return f"Bearer {self._token_data.access_token}"

    def is_nearly_expired(self, now: datetime | None = None) -> bool:
        """Return True when the token expires within one check interval."""
        return self._token_data.is_nearly_expired(self._check_interval, now)

    async def _async_update_data(self) -> str:
        """Check token expiration and refresh if needed."""
        if not self.is_nearly_expired():
            _LOGGER.debug(
                "Token still valid, no refresh needed. Expires at: %s",
                self._token_data.expire_at.isoformat(),
            )
            return self.get_access_token()

        client_id = self._config.get(CONF_CLIENT_ID)
        client_secret = self._config.get(CONF_CLIENT_SECRET)
        if not client_id or not client_secret:
            _LOGGER.warning(
                'Configuration parameters "client_id" or "client_secret" are empty. '
                "Token will not be auto refreshed and will expire soon"
            )
            return self.get_access_token()

        if not self._token_data.refresh_token:
            _LOGGER.warning(
                "No valid refresh token known. "
                "Token will not be auto refreshed and will expire soon"
            )
            return self.get_access_token()

        try:
            _LOGGER.info("Refreshing token")
            response = await api.async_refresh_token(
                self.session,
                self.get_access_token(),
                client_id,
                client_secret,
                self._token_data.refresh_token,
            )
            token_data = TokenData.from_response(response)
        except api.MieleApiClientError as err:
            error_msg = f"API error: {err}"
            _LOGGER.exception("API error during token refresh")
            raise UpdateFailed(error_msg) from err
        except httpx.RequestError as err:
            error_msg = f"Connection error: {err}"
            _LOGGER.exception("Connection error during token refresh")
            raise UpdateFailed(error_msg) from err
        except (KeyError, TypeError, ValueError) as err:
            error_msg = f"Malformed token response: {err}"
            _LOGGER.exception("Malformed response during token refresh")
            raise UpdateFailed(error_msg) from err

        await self._async_replace_token(token_data)
        _LOGGER.info("Successfully refreshed token")
        return self.get_access_token()

    async def async_apply_authorization_grant(
        self, code: str, redirect_uri: str
    ) -> None:
        """Exchange an authorization grant code and overwrite the current token.

        Raises:
            MieleApiAuthError: If the grant is rejected.
            MieleApiClientError: If credentials are missing or the request fails.

        """
        client_id = self._config.get(CONF_CLIENT_ID)
        client_secret = self._config.get(CONF_CLIENT_SECRET)
        if not client_id or not client_secret:
            error_msg = "Client id or client secret not configured"
            raise api.MieleApiClientError(error_msg)

        response = await api.async_request_token(
            self.session, client_id, client_secret, code, redirect_uri
        )
        await self._async_replace_token(TokenData.from_response(response))
        _LOGGER.info("Stored token from authorization grant")
        self.async_set_updated_data(self.get_access_token())

    async def _async_replace_token(self, token_data: TokenData) -> None:
        self._token_data = token_data
        await _async_save_token(self._store, token_data)


async def _async_load_token(store: TokenStore) -> TokenData | None:
    try:
        record = await store.async_get(TOKEN_STORAGE_NAME)
    except (HomeAssistantError, OSError, ValueError):
        _LOGGER.exception("Failed to read stored token")
        return None

    if not record:
        return None

    try:
        return TokenData.from_dict(record)
    except (KeyError, TypeError, ValueError):
        _LOGGER.warning("Stored token is incomplete, ignoring it")
        return None


async def _async_save_token(store: TokenStore, token_data: TokenData) -> None:
    try:
        await store.async_set(TOKEN_STORAGE_NAME, token_data.as_dict())
    except (HomeAssistantError, OSError):
        _LOGGER.exception("Failed to persist token")


async def async_get_token_manager(
    hass: HomeAssistant,
    session: httpx.AsyncClient,
    store: TokenStore,
    config: Mapping[str, Any],
    config_entry: ConfigEntry | None = None,
) -> MieleTokenManager:
    """Return the process-wide token manager, creating it on first use."""
    domain_data = hass.data.setdefault(DOMAIN, {})
    lock = domain_data.setdefault(DATA_TOKEN_LOCK, asyncio.Lock())

    async with lock:
        if DATA_TOKEN_MANAGER not in domain_data:
            domain_data[DATA_TOKEN_MANAGER] = await MieleTokenManager.async_create(
                hass, session, store, config, config_entry
            )
    return domain_data[DATA_TOKEN_MANAGER]
