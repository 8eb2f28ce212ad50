import pytest

from fitpantry.core.crypto import CredentialVault, get_vault
from fitpantry.errors import ConfigurationError, DecryptionError, EncryptionError

KEY = "0123456789abcdef0123456789abcdef"


def test_encrypt_decrypt_round_trip():
    vault = CredentialVault(KEY)
    for secret in ["AIzaSyA-some-key-value-123456", "", "ünïcødé ✓", "x" * 500]:
        assert vault.decrypt(vault.encrypt(secret)) == secret


def test_ciphertext_format_is_iv_colon_hex():
    stored = CredentialVault(KEY).encrypt("AIzaSyA-some-key-value-123456")
    iv_hex, ct_hex = stored.split(":")
    assert len(iv_hex) == 32
    assert len(ct_hex) % 32 == 0
    bytes.fromhex(iv_hex)
    bytes.fromhex(ct_hex)


def test_fresh_iv_per_call():
    vault = CredentialVault(KEY)
    a = vault.encrypt("same secret")
    b = vault.encrypt("same secret")
    assert a != b
    assert a.split(":")[0] != b.split(":")[0]


@pytest.mark.parametrize("bad", [
    "no-separator",
    "a:b:c",
    "zz:zz",
    ":",
    "",
    "00112233445566778899aabbccddeeff:abc",
])
def test_decrypt_rejects_malformed(bad):
    with pytest.raises(DecryptionError):
        CredentialVault(KEY).decrypt(bad)


def test_decrypt_rejects_non_string():
    with pytest.raises(DecryptionError):
        CredentialVault(KEY).decrypt(None)


def test_wrong_key_never_returns_plaintext():
    stored = CredentialVault(KEY).encrypt("AIzaSyA-some-key-value-123456")
    other = CredentialVault("fedcba9876543210fedcba9876543210")
    try:
        result = other.decrypt(stored)
    except DecryptionError:
        return
    assert result != "AIzaSyA-some-key-value-123456"


def test_encrypt_non_string_raises_encryption_error():
    with pytest.raises(EncryptionError):
        CredentialVault(KEY).encrypt(None)


@pytest.mark.parametrize("key", ["", "short", "x" * 31, "x" * 33])
def test_key_must_be_32_bytes(key):
    with pytest.raises(ConfigurationError):
        CredentialVault(key)


def test_looks_valid():
    assert CredentialVault.looks_valid("AIzaSyA-test-key-0123456789abcdefghij")
    assert not CredentialVault.looks_valid("notastripekey")
    assert not CredentialVault.looks_valid("AIza123")
    assert not CredentialVault.looks_valid("sk-0123456789abcdefghijklmnop")
    assert not CredentialVault.looks_valid(None)


def test_process_vault_uses_configured_key():
    vault = get_vault()
    assert vault is get_vault()
    assert CredentialVault(KEY).decrypt(vault.encrypt("AIzaSyA-some-key-value-123456")) == (
        "AIzaSyA-some-key-value-123456"
    )
