"""Tests for credential encryption helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from hotkey_refiner.services.secrets import CredentialFile, SecretVault, redact_secret


def test_vault_tokens_are_prefixed(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "vault.key")
    token = vault.encrypt("sk-ant-123456")

    assert token.startswith("fernet:")
    assert "sk-ant-123456" not in token
    assert vault.decrypt(token) == "sk-ant-123456"
    assert vault.strategy == "fernet"


def test_vault_key_is_reused(tmp_path: Path) -> None:
    key_path = tmp_path / "vault.key"
    token = SecretVault(key_path=key_path).encrypt("secret")
    assert SecretVault(key_path=key_path).decrypt(token) == "secret"


def test_vault_rejects_foreign_prefix(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "vault.key")
    with pytest.raises(ValueError):
        vault.decrypt("keyring:abc")


def test_vault_rejects_tampered_token(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "vault.key")
    with pytest.raises(ValueError):
        vault.decrypt("fernet:not-a-token")


def test_empty_values_pass_through(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "vault.key")
    assert vault.encrypt("") == ""
    assert vault.decrypt(None) == ""


class TestCredentialFile:
    def test_set_get_delete(self, tmp_path: Path) -> None:
        credential = CredentialFile(tmp_path / "api_key.token")
        assert credential.get() is None

        credential.set("sk-ant-abc")
        assert "sk-ant-abc" not in credential.path.read_text(encoding="utf-8")
        assert credential.get() == "sk-ant-abc"

        credential.delete()
        assert credential.get() is None

    def test_delete_missing_is_noop(self, tmp_path: Path) -> None:
        CredentialFile(tmp_path / "api_key.token").delete()


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("", ""),
        ("abc", "***"),
        ("sk-ant-1234", "sk*******34"),
    ],
)
def test_redact_secret(value: str, expected: str) -> None:
    assert redact_secret(value) == expected
