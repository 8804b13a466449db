"""AES helper for monetary and score fields stored at rest.

Values are encrypted with AES-256-CBC. The key is the shared secret's
UTF-8 bytes cut or zero-padded to 32 bytes; the IV is the first 16 bytes
of SHA-256(key). The IV is therefore fixed per secret and equal
plaintexts encrypt to equal ciphertexts. Existing rows were written this
way, so the scheme is kept for compatibility. A new deployment should use
a random per-record IV stored next to the ciphertext instead.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from decimal import Decimal, InvalidOperation, localcontext
from typing import Final

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from edushield.common.errors import DecodeError, ValidationError

KEY_SIZE: Final[int] = 32
IV_SIZE: Final[int] = 16
_BLOCK_BITS: Final[int] = algorithms.AES.block_size
_CENTS: Final[Decimal] = Decimal("0.01")


def derive_key(secret: str) -> bytes:
    raw = secret.encode("utf-8")
    return raw[:KEY_SIZE].ljust(KEY_SIZE, b"\x00")


def derive_iv(key: bytes) -> bytes:
    return hashlib.sha256(key).digest()[:IV_SIZE]


def format_decimal(value: Decimal) -> str:
    """
    Render *value* as fixed-point text with at least two fractional digits.

    ``Decimal("1234.5")`` -> ``"1234.50"``; ``Decimal("0.125")`` keeps all
    three digits so the round trip stays exact.
    """
    exponent = value.as_tuple().exponent
    if exponent >= -2:
        digits = len(value.as_tuple().digits) + max(exponent, 0) + 2
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, digits)
            value = value.quantize(_CENTS)
    return format(value, "f")


class EncryptionCodec:
    """Reversible, deterministic encoding of decimals into opaque text."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("encryption secret must be a non-empty string")
        self._key = derive_key(secret)
        self._iv = derive_iv(self._key)

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------
    def encrypt_text(self, plaintext: str) -> str:
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        data = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(self._iv)).encryptor()
        return base64.b64encode(encryptor.update(data) + encryptor.finalize()).decode("ascii")

    def decrypt_text(self, ciphertext: str) -> str:
        if not ciphertext:
            raise DecodeError("empty ciphertext")
        try:
            raw = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError("not valid base64", cause=exc) from exc
        if not raw or len(raw) % IV_SIZE:
            raise DecodeError("length is not a whole number of AES blocks")

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(self._iv)).decryptor()
        padded = decryptor.update(raw) + decryptor.finalize()
        try:
            unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
        except ValueError as exc:
            # Bad padding is what a foreign key almost always produces.
            raise DecodeError("invalid padding (wrong key or corrupted data)", cause=exc) from exc
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("plaintext is not UTF-8 (wrong key or corrupted data)", cause=exc) from exc

    # ------------------------------------------------------------------
    # Decimals
    # ------------------------------------------------------------------
    def encode(self, value: Decimal | int) -> str:
        if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
            raise ValidationError(
                f"expected Decimal or int, got {type(value).__name__}", field="value"
            )
        value = Decimal(value)
        if not value.is_finite():
            raise ValidationError("only finite decimals can be encrypted", field="value")
        return self.encrypt_text(format_decimal(value))

    def decode(self, ciphertext: str) -> Decimal:
        text = self.decrypt_text(ciphertext)
        try:
            value = Decimal(text)
        except InvalidOperation as exc:
            raise DecodeError("plaintext is not a decimal number", cause=exc) from exc
        if not value.is_finite():
            raise DecodeError("plaintext is not a finite decimal")
        return value

    def encode_optional(self, value: Decimal | int | None) -> str | None:
        return None if value is None else self.encode(value)

    def decode_optional(self, ciphertext: str | None) -> Decimal | None:
        return None if ciphertext is None else self.decode(ciphertext)


__all__ = ["EncryptionCodec", "derive_key", "derive_iv", "format_decimal"]
