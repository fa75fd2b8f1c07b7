"""Tests for the HostBridge command adapter."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from hotkey_refiner.services.bridge import BridgeError, HostBridge, _describe_result, redact_args


class _Host:
    def __init__(self) -> None:
        self.saved: list[str] = []

    def commands(self) -> dict[str, Any]:
        return {
            "echo": self.echo,
            "async_echo": self.async_echo,
            "save_api_key": self.save_api_key,
            "get_api_key": lambda: "sk-ant-stored-secret",
            "explode": self.explode,
            "explode_silently": self.explode_silently,
        }

    def echo(self, value: Any = None) -> Any:
        return value

    async def async_echo(self, value: Any = None) -> Any:
        return value

    def save_api_key(self, api_key: str) -> None:
        self.saved.append(api_key)

    def explode(self) -> None:
        raise ValueError("config file is read-only")

    def explode_silently(self) -> None:
        raise KeyError


@pytest.fixture
def host() -> _Host:
    return _Host()


@pytest.fixture
def host_bridge(host: _Host) -> HostBridge:
    return HostBridge(host)


class TestInvoke:
    @pytest.mark.asyncio
    async def test_sync_handler(self, host_bridge: HostBridge) -> None:
        assert await host_bridge.invoke("echo", {"value": [1, 2]}) == [1, 2]

    @pytest.mark.asyncio
    async def test_async_handler(self, host_bridge: HostBridge) -> None:
        assert await host_bridge.invoke("async_echo", {"value": "hi"}) == "hi"

    @pytest.mark.asyncio
    async def test_missing_args_default_to_empty(self, host_bridge: HostBridge) -> None:
        assert await host_bridge.invoke("echo") is None

    @pytest.mark.asyncio
    async def test_unknown_command(self, host_bridge: HostBridge) -> None:
        with pytest.raises(BridgeError) as excinfo:
            await host_bridge.invoke("does_not_exist")
        assert excinfo.value.command == "does_not_exist"
        assert excinfo.value.message == "unknown command"

    @pytest.mark.asyncio
    async def test_handler_exception_is_wrapped(self, host_bridge: HostBridge) -> None:
        with pytest.raises(BridgeError) as excinfo:
            await host_bridge.invoke("explode")
        assert excinfo.value.message == "config file is read-only"
        assert isinstance(excinfo.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_empty_exception_message_uses_type_name(self, host_bridge: HostBridge) -> None:
        with pytest.raises(BridgeError) as excinfo:
            await host_bridge.invoke("explode_silently")
        assert excinfo.value.message == "KeyError"

    @pytest.mark.asyncio
    async def test_bad_arguments_surface_as_bridge_error(self, host_bridge: HostBridge) -> None:
        with pytest.raises(BridgeError):
            await host_bridge.invoke("echo", {"unexpected": 1})

    def test_commands_are_listed(self, host_bridge: HostBridge) -> None:
        assert "save_api_key" in host_bridge.commands
        assert list(host_bridge.commands) == sorted(host_bridge.commands)


class TestRedaction:
    def test_redact_args_masks_credential(self) -> None:
        redacted = redact_args({"api_key": "sk-ant-abcdefgh", "model": "m"})
        assert redacted["api_key"] != "sk-ant-abcdefgh"
        assert redacted["model"] == "m"

    def test_secret_results_are_summarized(self) -> None:
        assert _describe_result("get_api_key", "sk-ant-abcdefgh") == "<present>"
        assert _describe_result("get_api_key", None) == "<absent>"
        assert _describe_result("get_history", [1, 2, 3]) == "<3 item(s)>"

    @pytest.mark.asyncio
    async def test_credential_never_logged(
        self, host_bridge: HostBridge, host: _Host, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="hotkey_refiner.services.bridge"):
            await host_bridge.invoke("save_api_key", {"api_key": "sk-ant-very-secret"})
            await host_bridge.invoke("get_api_key")
        assert host.saved == ["sk-ant-very-secret"]
        assert "sk-ant-very-secret" not in caplog.text
        assert "sk-ant-stored-secret" not in caplog.text
