"""Integration tests: file-backed vault across controller instances."""

import base64
import json

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from pinvault.core.exceptions import AuthenticationError
from pinvault.core.models import ItemCategory, VaultItem, VaultState
from pinvault.core.storage import FileVaultStore
from pinvault.core.vault import VaultController


@pytest.fixture
def vault_path(tmp_path):
    return tmp_path / "home" / "vault.json"


def test_vault_survives_restart(vault_path):
    """Everything written by one process is readable by the next."""
    first = VaultController(FileVaultStore(vault_path))
    first.setup_pin("1234")
    card = first.add_item(
        VaultItem(title="Visa", category=ItemCategory.CREDIT_CARD, primary_field="4111", secondary_field="123"),
        "1234",
    )
    first.add_item(VaultItem(title="Diary", category=ItemCategory.NOTE, notes="dear diary"), "1234")
    first.delete_item(card.id, "1234")
    first.lock()

    second = VaultController(FileVaultStore(vault_path))
    assert second.state is VaultState.LOCKED
    with pytest.raises(AuthenticationError):
        second.unlock("4321")
    items = second.unlock("1234")
    assert [i.title for i in items] == ["Diary"]
    assert items[0].notes == "dear diary"


def test_persisted_record_is_standard_pbkdf2_aes_gcm(vault_path):
    """The file can be opened with nothing but PBKDF2-SHA256/100k and AES-256-GCM."""
    vault = VaultController(FileVaultStore(vault_path))
    vault.setup_pin("135790")
    added = vault.add_item(
        VaultItem(title="Email", primary_field="a@b.com", secondary_field="pw"), "135790"
    )

    record = json.loads(vault_path.read_text(encoding="utf-8"))
    assert set(record) == {"iv", "salt", "data"}
    salt = base64.b64decode(record["salt"])
    iv = base64.b64decode(record["iv"])
    data = base64.b64decode(record["data"])
    assert len(salt) == 16
    assert len(iv) == 12

    key = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=100_000).derive(b"135790")
    payload = json.loads(AESGCM(key).decrypt(iv, data, None).decode("utf-8"))
    assert payload == [
        {
            "id": added.id,
            "title": "Email",
            "category": "Login/Senha",
            "primaryField": "a@b.com",
            "secondaryField": "pw",
        }
    ]


def test_record_written_elsewhere_is_readable(vault_path):
    """A record produced outside the engine (same parameters) unlocks normally."""
    salt = b"\x11" * 16
    iv = b"\x22" * 12
    key = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=100_000).derive(b"2580")
    plaintext = json.dumps(
        [{"id": "x-1", "title": "Home Wi-Fi", "category": "Wi-Fi", "primaryField": "casa", "secondaryField": "senha"}]
    ).encode("utf-8")
    data = AESGCM(key).encrypt(iv, plaintext, None)
    vault_path.parent.mkdir(parents=True)
    vault_path.write_text(
        json.dumps(
            {
                "iv": base64.b64encode(iv).decode(),
                "salt": base64.b64encode(salt).decode(),
                "data": base64.b64encode(data).decode(),
            }
        ),
        encoding="utf-8",
    )

    vault = VaultController(FileVaultStore(vault_path))
    (item,) = vault.unlock("2580")
    assert item.id == "x-1"
    assert item.category is ItemCategory.WIFI
    assert item.secondary_field == "senha"


def test_tampered_file_cannot_be_unlocked(vault_path):
    vault = VaultController(FileVaultStore(vault_path))
    vault.setup_pin("1234")
    vault.lock()

    record = json.loads(vault_path.read_text(encoding="utf-8"))
    data = bytearray(base64.b64decode(record["data"]))
    data[0] ^= 0xFF
    record["data"] = base64.b64encode(bytes(data)).decode()
    vault_path.write_text(json.dumps(record), encoding="utf-8")

    with pytest.raises(AuthenticationError):
        vault.unlock("1234")
    assert vault.state is VaultState.LOCKED
