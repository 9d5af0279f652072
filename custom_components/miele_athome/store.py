"""Persistent key-value storage for the Miele@home integration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.storage import Store

from .const import TOKEN_STORAGE_VERSION

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)


class TokenStore:
    """Opaque get/set-by-name store backed by Home Assistant storage files."""

    def __init__(self, hass: HomeAssistant) -> None:
        """Initialize the store."""
        self._hass = hass
        self._stores: dict[str, Store[dict[str, Any]]] = {}

    def _store(self, name: str) -> Store[dict[str, Any]]:
        if name not in self._stores:
            self._stores[name] = Store(self._hass, TOKEN_STORAGE_VERSION, name)
        return self._stores[name]

    async def async_get(self, name: str) -> dict[str, Any] | None:
        """Return the record stored under name, or None when absent."""
        return await self._store(name).async_load()

    async def async_set(self, name: str, value: dict[str, Any]) -> None:
        """Persist value under name, replacing any previous record."""
        _LOGGER.debug("Persisting record %s", name)
        await self._store(name).async_save(value)
