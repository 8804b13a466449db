# tests/test_codec.py
from __future__ import annotations

import base64
from decimal import Decimal

import pytest

from edushield.common.errors import DataCorruptionError, DecodeError, RetryPolicy, ValidationError
from edushield.security.codec import EncryptionCodec, derive_iv, derive_key, format_decimal

from tests.conftest import TEST_SECRET


def test_round_trip_scenario_value(codec):
    assert codec.decode(codec.encode(Decimal("1234.56"))) == Decimal("1234.56")


@pytest.mark.parametrize(
    "value",
    ["0", "5", "0.01", "-42.50", "99999999.99", "0.125", "1E+3", "123456789012345678901234567890.12"],
)
def test_round_trip_is_exact(codec, value):
    assert codec.decode(codec.encode(Decimal(value))) == Decimal(value)


def test_encoding_is_deterministic(codec):
    assert codec.encode(Decimal("10.00")) == codec.encode(Decimal("10.00"))
    assert codec.encode(Decimal("10.00")) != codec.encode(Decimal("10.01"))


def test_plaintext_has_at_least_two_decimals(codec):
    assert codec.decrypt_text(codec.encode(Decimal("5"))) == "5.00"
    assert codec.decrypt_text(codec.encode(Decimal("1234.5"))) == "1234.50"
    assert codec.decrypt_text(codec.encode(Decimal("0.125"))) == "0.125"


def test_format_decimal():
    assert format_decimal(Decimal("7")) == "7.00"
    assert format_decimal(Decimal("1E+3")) == "1000.00"
    assert format_decimal(Decimal("-0.5")) == "-0.50"


def test_ints_are_accepted(codec):
    assert codec.decode(codec.encode(250)) == Decimal("250")
    assert codec.encode(250) == codec.encode(Decimal("250.00"))


@pytest.mark.parametrize("bad", [1.5, True, "12.00", None])
def test_rejects_non_decimal_input(codec, bad):
    with pytest.raises(ValidationError):
        codec.encode(bad)


@pytest.mark.parametrize("bad", [Decimal("NaN"), Decimal("Infinity"), Decimal("-Infinity")])
def test_rejects_non_finite(codec, bad):
    with pytest.raises(ValidationError):
        codec.encode(bad)


def test_key_is_truncated_or_padded_to_32_bytes():
    assert derive_key("abc") == b"abc" + b"\x00" * 29
    long_secret = "x" * 40
    assert derive_key(long_secret) == b"x" * 32
    assert len(derive_iv(derive_key("abc"))) == 16


def test_secrets_sharing_a_32_byte_prefix_are_equivalent():
    a = EncryptionCodec("k" * 32 + "tail-one")
    b = EncryptionCodec("k" * 32 + "tail-two")
    assert a.encode(Decimal("1.00")) == b.encode(Decimal("1.00"))


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        EncryptionCodec("")


def test_output_is_base64_of_whole_blocks(codec):
    raw = base64.b64decode(codec.encode(Decimal("1234.56")), validate=True)
    assert len(raw) % 16 == 0


def test_wrong_key_is_decode_error(codec):
    ciphertext = codec.encode(Decimal("1234.56"))
    other = EncryptionCodec(TEST_SECRET + "-rotated")
    with pytest.raises(DecodeError):
        other.decode(ciphertext)


@pytest.mark.parametrize(
    "garbage",
    [
        "",
        "not base64 at all!!",
        base64.b64encode(b"short").decode(),
        base64.b64encode(b"\x00" * 15).decode(),
    ],
)
def test_malformed_ciphertext_is_decode_error(codec, garbage):
    with pytest.raises(DecodeError):
        codec.decode(garbage)


def test_non_numeric_plaintext_is_decode_error(codec):
    with pytest.raises(DecodeError):
        codec.decode(codec.encrypt_text("twelve"))


def test_decode_error_is_fatal_corruption(codec):
    with pytest.raises(DecodeError) as excinfo:
        codec.decode("%%%")
    err = excinfo.value
    assert isinstance(err, DataCorruptionError)
    assert err.retry_policy is RetryPolicy.NEVER
    assert not err.is_retryable()
    assert err.to_dict()["error_code"] == "ciphertext_invalid"


def test_optional_helpers(codec):
    assert codec.encode_optional(None) is None
    assert codec.decode_optional(None) is None
    assert codec.decode_optional(codec.encode_optional(Decimal("3.10"))) == Decimal("3.10")
