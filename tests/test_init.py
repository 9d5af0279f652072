"""Tests for the Miele@home integration setup."""

from typing import Any
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from custom_components.miele_athome import (
    api,
    async_setup_entry,
    async_unload_entry,
)
from custom_components.miele_athome.const import (
    CONF_TOKEN,
    DATA_TOKEN_MANAGER,
    DOMAIN,
)
from custom_components.miele_athome.models import DeviceIdentity

MODULE = "custom_components.miele_athome"


@pytest.fixture
def mock_hass() -> Mock:
    """Create a mock Home Assistant instance."""
    hass = Mock()
    hass.data = {}
    return hass


@pytest.fixture
def mock_entry() -> Mock:
    """Create a mock config entry."""
    entry = Mock()
    entry.entry_id = "test_entry_id"
    entry.data = {CONF_TOKEN: "access"}
    return entry


@pytest.fixture
def token_manager(mock_token_manager: Mock) -> Mock:
    """Extend the token manager with the coordinator API used at setup."""
    mock_token_manager.async_refresh = AsyncMock()
    mock_token_manager.async_add_listener = Mock(return_value=Mock())
    return mock_token_manager


@pytest.fixture
def devices() -> list[DeviceIdentity]:
    """Create discovered devices, one of them unsupported."""
    return [
        DeviceIdentity("000123456789", "Laundry", "WWG360", "04.20", 1),
        DeviceIdentity("000111111111", "Oven", "H7264BP", "01.00", 12),
    ]


@pytest.fixture
def patched_setup(
    token_manager: Mock,
    devices: list[DeviceIdentity],
) -> Any:
    """Patch the collaborators of async_setup_entry."""
    with (
        patch(f"{MODULE}.create_session_client", return_value=Mock()),
        patch(
            f"{MODULE}.async_get_token_manager",
            AsyncMock(return_value=token_manager),
        ),
        patch(f"{MODULE}.api.async_get_devices", AsyncMock(return_value=devices)),
        patch(f"{MODULE}.MieleAccessory") as mock_accessory_cls,
    ):
        mock_accessory_cls.return_value.async_setup = AsyncMock()
        mock_accessory_cls.return_value.async_teardown = AsyncMock()
        yield mock_accessory_cls


class TestAsyncSetupEntry:
    """Tests for async_setup_entry."""

    @pytest.mark.asyncio
    async def test_missing_token_fails(
        self, mock_hass: Mock, mock_entry: Mock
    ) -> None:
        """Test that setup fails without a configured token."""
        mock_entry.data = {}
        assert await async_setup_entry(mock_hass, mock_entry) is False

    @pytest.mark.asyncio
    async def test_setup_builds_supported_accessories(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
        token_manager: Mock,
        patched_setup: Mock,
    ) -> None:
        """Test that one accessory is set up per supported device."""
        assert await async_setup_entry(mock_hass, mock_entry) is True

        token_manager.async_refresh.assert_awaited_once()
        token_manager.async_add_listener.assert_called_once()
        patched_setup.assert_called_once()
        patched_setup.return_value.async_setup.assert_awaited_once()
        entry_data = mock_hass.data[DOMAIN][mock_entry.entry_id]
        assert entry_data["accessories"] == [patched_setup.return_value]
        assert entry_data["token_manager"] is token_manager

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            api.MieleApiAuthError("Authentication error: 401", 401),
            api.MieleApiClientError("Request failed: 500", 500),
            httpx.ConnectError("Connection failed"),
            httpx.ReadTimeout("Request timeout"),
        ],
    )
    async def test_discovery_failure_fails_setup(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
        patched_setup: Mock,
        error: Exception,
    ) -> None:
        """Test that a failed device listing fails the setup."""
        with patch(f"{MODULE}.api.async_get_devices", AsyncMock(side_effect=error)):
            assert await async_setup_entry(mock_hass, mock_entry) is False

        patched_setup.assert_not_called()

    @pytest.mark.asyncio
    async def test_accessory_failure_tears_down_started_accessories(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
        patched_setup: Mock,
    ) -> None:
        """Test that a failing accessory stops the ones already started."""
        first = Mock(async_setup=AsyncMock(), async_teardown=AsyncMock())
        second = Mock(
            async_setup=AsyncMock(side_effect=ValueError("bad range")),
            async_teardown=AsyncMock(),
        )
        patched_setup.side_effect = [first, second]
        devices = [
            DeviceIdentity("000123456789", "Laundry", "WWG360", "04.20", 1),
            DeviceIdentity("000222222222", "Fridge", "K7743E", "02.00", 19),
        ]

        with patch(f"{MODULE}.api.async_get_devices", AsyncMock(return_value=devices)):
            assert await async_setup_entry(mock_hass, mock_entry) is False

        first.async_teardown.assert_awaited_once()
        second.async_teardown.assert_awaited_once()
        assert mock_entry.entry_id not in mock_hass.data.get(DOMAIN, {})


class TestAsyncUnloadEntry:
    """Tests for async_unload_entry."""

    @pytest.mark.asyncio
    async def test_unload_tears_down_accessories(
        self,
        mock_hass: Mock,
        mock_entry: Mock,
        token_manager: Mock,
        patched_setup: Mock,
    ) -> None:
        """Test that unloading stops every accessory and drops the token manager."""
        await async_setup_entry(mock_hass, mock_entry)
        mock_hass.data[DOMAIN][DATA_TOKEN_MANAGER] = token_manager

        assert await async_unload_entry(mock_hass, mock_entry) is True

        patched_setup.return_value.async_teardown.assert_awaited_once()
        assert mock_entry.entry_id not in mock_hass.data[DOMAIN]
        assert DATA_TOKEN_MANAGER not in mock_hass.data[DOMAIN]

    @pytest.mark.asyncio
    async def test_unload_unknown_entry(
        self, mock_hass: Mock, mock_entry: Mock
    ) -> None:
        """Test that unloading an entry that never loaded succeeds."""
        assert await async_unload_entry(mock_hass, mock_entry) is True
