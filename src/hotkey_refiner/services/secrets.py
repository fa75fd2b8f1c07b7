"""Credential encryption helpers used by the reference host."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "SecretProvider",
    "FernetSecretProvider",
    "SecretVault",
    "CredentialFile",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)


class SecretProvider(ABC):
    """Interface for encrypting and decrypting sensitive strings."""

    name: str = "unknown"

    @abstractmethod
    def encrypt(self, secret: str) -> str:
        """Return an encoded representation of ``secret`` suitable for storage."""

    @abstractmethod
    def decrypt(self, token: str) -> str:
        """Return the plaintext representation of ``token``."""


class FernetSecretProvider(SecretProvider):
    """Secret provider that uses a symmetric Fernet key stored on disk."""

    name = "fernet"

    def __init__(self, key_path: Path) -> None:
        self._key_path = key_path
        self._fernet: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return token.decode("ascii")

    def decrypt(self, token: str) -> str:
        raw = self._get_fernet().decrypt(token.encode("ascii"))
        return raw.decode("utf-8")

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SecretVault:
    """Encrypts and decrypts sensitive strings with a provider-prefixed token."""

    def __init__(self, *, key_path: Path, provider: SecretProvider | None = None) -> None:
        self._provider = provider or FernetSecretProvider(key_path)

    @property
    def strategy(self) -> str:
        return self._provider.name

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        return f"{self._provider.name}:{self._provider.encrypt(secret)}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, payload = _split_token(token)
        if prefix not in (None, self._provider.name):
            raise ValueError(f"Unknown secret token prefix {prefix!r}")
        try:
            return self._provider.decrypt(payload)
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc


class CredentialFile:
    """Single encrypted credential slot persisted next to the host config.

    Stands in for the OS keychain entry the native host would use.
    """

    def __init__(self, path: Path, *, vault: SecretVault | None = None) -> None:
        self._path = path
        self._vault = vault or SecretVault(key_path=path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def get(self) -> str | None:
        if not self._path.exists():
            return None
        token = self._path.read_text(encoding="utf-8").strip()
        if not token:
            return None
        return self._vault.decrypt(token)

    def set(self, secret: str) -> None:
        token = self._vault.encrypt(secret)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(token, encoding="utf-8")
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(self._path)
        LOGGER.debug("Credential stored via %s backend", self._vault.strategy)

    def delete(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return
        LOGGER.debug("Credential removed from %s", self._path)


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"


def _split_token(token: str) -> tuple[str | None, str]:
    if ":" not in token:
        return None, token
    prefix, payload = token.split(":", 1)
    return (prefix or None), payload
