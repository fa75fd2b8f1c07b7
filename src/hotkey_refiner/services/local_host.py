"""In-process reference implementation of the host command table.

The production host is a native process; :class:`LocalHost` implements the
same commands on top of a JSON config file, an encrypted credential file and
an in-memory history ring so the client can run and be tested end to end.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Sequence

import httpx
from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from ..core.models import DEFAULT_HOST_MODEL, HistoryEntry, Template, make_preview
from .config import ClientConfig
from .hotkeys import HotkeyParseError, parse_hotkey
from .migration import (
    IMPORTED_TEMPLATE_DESCRIPTION,
    IMPORTED_TEMPLATE_NAME,
    DetectedEnvFile,
    ImportResult,
    MigrationFlag,
    default_search_paths,
    detect_env_files,
    find_env_file,
)
from .secrets import CredentialFile

__all__ = ["HostError", "LocalHost", "TEMPLATE_SCHEMA"]

LOGGER = logging.getLogger(__name__)
_CONFIG_VERSION = 1

TEMPLATE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name", "prompt"],
    "properties": {
        "id": {"type": ["string", "null"]},
        "name": {"type": "string", "minLength": 1, "pattern": r"\S"},
        "description": {"type": ["string", "null"]},
        "prompt": {"type": "string", "minLength": 1, "pattern": r"\S"},
        "hotkey": {"type": ["string", "null"]},
        "created_at": {"type": ["string", "null"]},
    },
}
_TEMPLATE_VALIDATOR = Draft202012Validator(TEMPLATE_SCHEMA)


class HostError(RuntimeError):
    """Raised when the host rejects a command."""


class LocalHost:
    """Reference host owning templates, history, settings and the credential."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        credentials: CredentialFile | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
        env_search_paths: Sequence[Path] | None = None,
    ) -> None:
        self._config = config
        self._config_path = config.config_dir / "config.json"
        self._credentials = credentials or CredentialFile(config.config_dir / "api_key.token")
        self._transport = transport
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._history: deque[HistoryEntry] = deque(maxlen=max(1, config.history_limit))
        self._migration_flag = MigrationFlag(config.config_dir)
        self._env_search_paths = env_search_paths

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def credentials(self) -> CredentialFile:
        return self._credentials

    def commands(self) -> Mapping[str, Callable[..., Any]]:
        return {
            "get_templates": self.get_templates,
            "save_template": self.save_template,
            "delete_template": self.delete_template,
            "reload_hotkeys": self.reload_hotkeys,
            "get_history": self.get_history,
            "get_history_page": self.get_history_page,
            "get_history_count": self.get_history_count,
            "search_history": self.search_history,
            "clear_history": self.clear_history,
            "get_api_key": self.get_api_key,
            "save_api_key": self.save_api_key,
            "delete_api_key": self.delete_api_key,
            "test_api_key": self.test_api_key,
            "get_default_model": self.get_default_model,
            "set_default_model": self.set_default_model,
            "is_autostart_enabled": self.is_autostart_enabled,
            "enable_autostart": self.enable_autostart,
            "disable_autostart": self.disable_autostart,
            "check_migration_needed": self.check_migration_needed,
            "perform_migration": self.perform_migration,
            "skip_migration": self.skip_migration,
        }

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------
    def get_templates(self) -> list[dict[str, Any]]:
        return [dict(item) for item in self._read_config()["templates"]]

    def save_template(self, template: Mapping[str, Any]) -> None:
        """Create or update a template; a payload without ``id`` is a create."""

        error = best_match(_TEMPLATE_VALIDATOR.iter_errors(dict(template)))
        if error is not None:
            location = ".".join(str(part) for part in error.path) or "template"
            raise HostError(f"Invalid template ({location}): {error.message}")

        candidate = Template.from_payload(template)
        payload = self._read_config()
        templates: list[dict[str, Any]] = payload["templates"]
        if candidate.hotkey:
            self._check_hotkey(candidate, templates)

        record = candidate.to_payload()
        record.setdefault("id", str(uuid.uuid4()))
        index = next((i for i, item in enumerate(templates) if item.get("id") == record["id"]), None)
        if index is None:
            record.setdefault("created_at", self._now_iso())
            templates.append(record)
            LOGGER.info("Template created: %s", record["name"])
        else:
            record.setdefault("created_at", templates[index].get("created_at") or self._now_iso())
            templates[index] = record
            LOGGER.info("Template updated: %s", record["name"])
        self._write_config(payload)

    def delete_template(self, id: str) -> None:
        payload = self._read_config()
        before = len(payload["templates"])
        payload["templates"] = [item for item in payload["templates"] if item.get("id") != id]
        if len(payload["templates"]) != before:
            LOGGER.info("Template deleted: %s", id)
        self._write_config(payload)

    def reload_hotkeys(self) -> int:
        count = sum(1 for item in self._read_config()["templates"] if item.get("hotkey"))
        LOGGER.info("Registered %d template hotkey(s)", count)
        return count

    def _check_hotkey(self, candidate: Template, templates: list[dict[str, Any]]) -> None:
        try:
            binding = parse_hotkey(candidate.hotkey or "")
        except HotkeyParseError as exc:
            raise HostError(str(exc)) from exc
        for item in templates:
            other = item.get("hotkey")
            if not other or item.get("id") == candidate.id:
                continue
            try:
                other_binding = parse_hotkey(other)
            except HotkeyParseError:
                continue
            if other_binding == binding:
                raise HostError(
                    f"Hotkey '{candidate.hotkey}' is already bound to template '{item.get('name')}'"
                )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def record(self, template_name: str, source: str, result: str) -> HistoryEntry:
        """Append a processing record, newest first, evicting beyond the cap."""

        entry = HistoryEntry(
            timestamp=self._now_iso(),
            template_name=template_name,
            source_preview=make_preview(source),
            result_preview=make_preview(result),
            full_source=source,
            full_result=result,
        )
        self._history.appendleft(entry)
        return entry

    def get_history(self) -> list[dict[str, Any]]:
        return [entry.to_payload() for entry in self._history]

    def get_history_page(self, offset: int, limit: int) -> list[dict[str, Any]]:
        entries = list(self._history)[max(0, offset):][: max(0, limit)]
        return [entry.to_payload() for entry in entries]

    def get_history_count(self) -> int:
        return len(self._history)

    def search_history(self, query: str) -> list[dict[str, Any]]:
        needle = (query or "").lower()
        return [
            entry.to_payload()
            for entry in self._history
            if needle in entry.template_name.lower()
            or needle in entry.source_preview.lower()
            or needle in entry.result_preview.lower()
        ]

    def clear_history(self) -> None:
        self._history.clear()
        LOGGER.info("History cleared")

    # ------------------------------------------------------------------
    # Credential
    # ------------------------------------------------------------------
    def get_api_key(self) -> str | None:
        try:
            return self._credentials.get()
        except ValueError as exc:
            raise HostError(f"Failed to retrieve API key: {exc}") from exc

    def save_api_key(self, api_key: str) -> None:
        if not (api_key or "").strip():
            raise HostError("API key is empty")
        self._credentials.set(api_key.strip())
        LOGGER.info("API key saved")

    def delete_api_key(self) -> None:
        self._credentials.delete()
        LOGGER.info("API key deleted")

    async def test_api_key(self, api_key: str | None = None) -> bool:
        """Send a one-token request with ``api_key`` (or the saved key)."""

        key = (api_key or "").strip() or self.get_api_key()
        if not key:
            raise HostError("No API key to test")
        url = f"{self._config.api_base_url.rstrip('/')}/v1/messages"
        body = {
            "model": self._config.test_model,
            "max_tokens": 1,
            "messages": [{"role": "user", "content": "Hi"}],
        }
        headers = {
            "x-api-key": key,
            "anthropic-version": self._config.api_version,
            "content-type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self._config.request_timeout
            ) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise HostError(f"Failed to connect to Anthropic API: {exc}") from exc
        LOGGER.info("API key test returned HTTP %s", response.status_code)
        return response.is_success

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def get_default_model(self) -> str:
        return str(self._read_config()["default_model"])

    def set_default_model(self, model: str) -> None:
        if not (model or "").strip():
            raise HostError("Model name is empty")
        payload = self._read_config()
        payload["default_model"] = model
        self._write_config(payload)
        LOGGER.info("Default model set to %s", model)

    def is_autostart_enabled(self) -> bool:
        return bool(self._read_config()["autostart_enabled"])

    def enable_autostart(self) -> None:
        self._set_autostart(True)

    def disable_autostart(self) -> None:
        self._set_autostart(False)

    def _set_autostart(self, enabled: bool) -> None:
        payload = self._read_config()
        payload["autostart_enabled"] = enabled
        self._write_config(payload)
        LOGGER.info("Autostart %s", "enabled" if enabled else "disabled")

    # ------------------------------------------------------------------
    # Migration from the legacy CLI
    # ------------------------------------------------------------------
    def check_migration_needed(self) -> dict[str, Any]:
        if self._migration_flag.is_completed():
            return {"needed": False, "env_files": []}
        env_files = self._detect_env_files()
        return {"needed": bool(env_files), "env_files": [item.to_info() for item in env_files]}

    def perform_migration(self, env_file_path: str) -> dict[str, bool]:
        env_file = find_env_file(self._detect_env_files(), env_file_path)
        if env_file is None:
            raise HostError("Env file not found")
        result = self._import_env_file(env_file)
        self._migration_flag.mark_completed()
        return result.to_payload()

    def skip_migration(self) -> None:
        self._migration_flag.mark_completed()

    def _detect_env_files(self) -> list[DetectedEnvFile]:
        paths = self._env_search_paths if self._env_search_paths is not None else default_search_paths()
        return detect_env_files(paths)

    def _import_env_file(self, env_file: DetectedEnvFile) -> ImportResult:
        result = ImportResult()
        if env_file.api_key:
            self.save_api_key(env_file.api_key)
            result.api_key_imported = True
        if env_file.prompt_template:
            self.save_template(
                {
                    "name": IMPORTED_TEMPLATE_NAME,
                    "description": IMPORTED_TEMPLATE_DESCRIPTION,
                    "prompt": env_file.prompt_template,
                }
            )
            result.template_imported = True
        LOGGER.info("Migration imported from %s: %s", env_file.path, result.to_payload())
        return result

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _read_config(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self._config_path.exists():
            try:
                payload = json.loads(self._config_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise HostError(f"Failed to parse config file: {exc}") from exc
            if not isinstance(payload, dict):
                raise HostError("Failed to parse config file: expected an object")
        templates = payload.get("templates")
        return {
            "version": _CONFIG_VERSION,
            "templates": [dict(item) for item in templates if isinstance(item, Mapping)]
            if isinstance(templates, list)
            else [],
            "default_model": payload.get("default_model") or DEFAULT_HOST_MODEL,
            "autostart_enabled": bool(payload.get("autostart_enabled", False)),
        }

    def _write_config(self, payload: Mapping[str, Any]) -> None:
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._config_path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._config_path)
        LOGGER.debug("Host config saved to %s", self._config_path)

    def _now_iso(self) -> str:
        return self._clock().isoformat()
