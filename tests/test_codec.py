import pytest

from siot_console.codec import (
    AddressFormatError,
    AmountFormatError,
    CodecError,
    decode_address,
    decode_amount,
    decode_hex_bytes,
    decode_quantity,
    encode_address,
    encode_quantity,
    hex_to_address,
    is_hex_address,
    scale_for_display,
)

SAMPLE = "0x9821e8c1dc176c92cac40b3c1fdb795aa1b38f89"


@pytest.mark.parametrize(
    "text",
    [SAMPLE, "0x" + "0" * 40, "0x" + "f" * 40, "0x00000000000000000000000000000000000000a1"],
)
def test_decode_then_encode_is_identity(text: str) -> None:
    raw = decode_address(text)

    assert len(raw) == 20
    assert encode_address(raw) == text


def test_decode_address_rejects_upper_case_digits() -> None:
    with pytest.raises(AddressFormatError, match="lower-case"):
        decode_address("0x" + "AB" * 20)
    with pytest.raises(AddressFormatError):
        decode_address(SAMPLE[:-1] + "F")


@pytest.mark.parametrize(
    "text, fragment",
    [
        ("0xabc", "length of 40"),
        ("", "length of 40"),
        (SAMPLE + "0", "length of 40"),
        ("00" + SAMPLE[2:], "prefix of 0x"),
        ("0X" + SAMPLE[2:], "prefix of 0x"),
        ("0x" + "g" * 40, "hexadecimal"),
        ("0x" + " " * 40, "hexadecimal"),
    ],
)
def test_decode_address_rejects_malformed_input(text: str, fragment: str) -> None:
    with pytest.raises(AddressFormatError) as excinfo:
        decode_address(text)

    assert fragment in str(excinfo.value)
    assert isinstance(excinfo.value, CodecError)
    assert isinstance(excinfo.value, ValueError)


def test_encode_address_left_pads_short_values() -> None:
    assert encode_address(b"\x01") == "0x" + "0" * 38 + "01"
    assert len(encode_address(b"")) == 42


def test_encode_address_rejects_oversized_values() -> None:
    with pytest.raises(AddressFormatError):
        encode_address(b"\x00" * 21)


def test_decode_amount_parses_arbitrary_precision() -> None:
    assert decode_amount("100") == 100
    assert decode_amount("0") == 0
    assert decode_amount("123456789012345678901234567890") == 123456789012345678901234567890


@pytest.mark.parametrize("text", ["", "abc", "-1", "+5", "1_000", "1.5", " 7", "0x10", "１２"])
def test_decode_amount_rejects_non_digits(text: str) -> None:
    with pytest.raises(AmountFormatError):
        decode_amount(text)


@pytest.mark.parametrize(
    "amount, expected",
    [(10**12, 1), (0, 0), (999999999999, 0), (5000000000000, 5), (2 * 10**12 - 1, 1)],
)
def test_scale_for_display_floors(amount: int, expected: int) -> None:
    assert scale_for_display(amount) == expected


def test_is_hex_address_allows_missing_prefix() -> None:
    assert is_hex_address(SAMPLE)
    assert is_hex_address(SAMPLE[2:])
    assert not is_hex_address("0")
    assert hex_to_address(SAMPLE[2:]) == decode_address(SAMPLE)


def test_wire_quantities() -> None:
    assert encode_quantity(100) == "0x64"
    assert decode_quantity("0x48c27395000") == 5000000000000
    with pytest.raises(CodecError):
        decode_quantity("64")
    with pytest.raises(CodecError):
        decode_quantity("0x")
    for malformed in ("0x-5", "0x_10", "0x 5", "0x+1"):
        with pytest.raises(CodecError):
            decode_quantity(malformed)
    with pytest.raises(CodecError):
        encode_quantity(-1)


def test_decode_hex_bytes() -> None:
    assert decode_hex_bytes("0xdeadbeef") == b"\xde\xad\xbe\xef"
    assert decode_hex_bytes("0x") == b""
    with pytest.raises(CodecError):
        decode_hex_bytes("0xabc")
    with pytest.raises(CodecError):
        decode_hex_bytes("deadbeef")
