try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from slideshow.services.token_cipher import TokenCipherService, TokenDecryptionError


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(secret="super-secret-key")
    plaintext = "ya29.sensitive-token"

    encrypted = cipher.encrypt(plaintext)
    assert encrypted != plaintext
    assert cipher.decrypt(encrypted) == plaintext


def test_token_cipher_rejects_ciphertext_from_rotated_secret() -> None:
    old = TokenCipherService(secret="old-secret")
    new = TokenCipherService(secret="new-secret")

    with pytest.raises(TokenDecryptionError):
        new.decrypt(old.encrypt("refresh-token"))


def test_token_cipher_requires_secret() -> None:
    with pytest.raises(ValueError):
        TokenCipherService(secret="")
