"""One-time import of settings from the legacy command-line tool's ``.env`` files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence

from dotenv import dotenv_values

__all__ = [
    "API_KEY_VARIABLE",
    "TEMPLATE_VARIABLE",
    "IMPORTED_TEMPLATE_NAME",
    "IMPORTED_TEMPLATE_DESCRIPTION",
    "DetectedEnvFile",
    "ImportResult",
    "MigrationFlag",
    "default_search_paths",
    "detect_env_files",
    "find_env_file",
    "read_env_file",
]

LOGGER = logging.getLogger(__name__)

API_KEY_VARIABLE = "ANTHROPIC_API_KEY"
TEMPLATE_VARIABLE = "PROMPT_TEMPLATE"
IMPORTED_TEMPLATE_NAME = "Imported from CLI"
IMPORTED_TEMPLATE_DESCRIPTION = "Automatically imported from .env configuration"
_FLAG_FILE = ".migration_completed"


@dataclass(slots=True)
class DetectedEnvFile:
    """A legacy ``.env`` file holding at least one importable value."""

    path: Path
    api_key: str | None = None
    prompt_template: str | None = None

    def to_info(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "has_api_key": self.api_key is not None,
            "has_template": self.prompt_template is not None,
        }


@dataclass(slots=True)
class ImportResult:
    api_key_imported: bool = False
    template_imported: bool = False

    @property
    def anything_imported(self) -> bool:
        return self.api_key_imported or self.template_imported

    def to_payload(self) -> dict[str, bool]:
        return {
            "api_key_imported": self.api_key_imported,
            "template_imported": self.template_imported,
        }


class MigrationFlag:
    """Marker file recording that migration was completed or skipped."""

    def __init__(self, config_dir: Path) -> None:
        self._path = config_dir / _FLAG_FILE

    @property
    def path(self) -> Path:
        return self._path

    def is_completed(self) -> bool:
        return self._path.exists()

    def mark_completed(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text("", encoding="utf-8")


def default_search_paths(*, cwd: Path | None = None, home: Path | None = None) -> list[Path]:
    """Locations the legacy tool read ``.env`` files from, in priority order."""

    cwd = cwd or Path.cwd()
    home = home or Path.home()
    paths = [
        cwd / ".env",
        home / ".env",
        home / ".hotkey-prompt-refiner" / ".env",
    ]
    if cwd.parent != cwd:
        paths.append(cwd.parent / ".env")
    return paths


def detect_env_files(paths: Iterable[Path]) -> list[DetectedEnvFile]:
    detected: list[DetectedEnvFile] = []
    seen: set[Path] = set()
    for path in paths:
        resolved = path.expanduser()
        if resolved in seen:
            continue
        seen.add(resolved)
        env_file = read_env_file(resolved)
        if env_file is not None:
            detected.append(env_file)
    return detected


def read_env_file(path: Path) -> DetectedEnvFile | None:
    """Parse ``path`` and return its importable values, or ``None``.

    ``PROMPT_TEMPLATE`` names a file; relative paths resolve against the
    directory holding the ``.env`` file. A template file that cannot be read
    is treated as absent.
    """

    if not path.is_file():
        return None
    try:
        values = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as exc:
        LOGGER.debug("Unable to read %s: %s", path, exc)
        return None

    api_key = values.get(API_KEY_VARIABLE) or None
    prompt_template = _load_template(path, values.get(TEMPLATE_VARIABLE))
    if api_key is None and prompt_template is None:
        return None
    return DetectedEnvFile(path=path, api_key=api_key, prompt_template=prompt_template)


def find_env_file(detected: Sequence[DetectedEnvFile], path: str) -> DetectedEnvFile | None:
    for env_file in detected:
        if str(env_file.path) == path:
            return env_file
    return None


def _load_template(env_path: Path, template_path: str | None) -> str | None:
    if not template_path:
        return None
    candidate = Path(template_path)
    if not candidate.is_absolute():
        candidate = env_path.parent / candidate
    try:
        return candidate.read_text(encoding="utf-8")
    except OSError as exc:
        LOGGER.debug("Prompt template %s referenced by %s unreadable: %s", candidate, env_path, exc)
        return None
