# tests/services/test_barcode.py
import pytest

from stocktake.services.barcode import (
    CODE_128,
    EAN_8,
    EAN_13,
    QR_CODE,
    UPC_A,
    UPC_E,
    BarcodeInvalid,
    BarcodeValid,
    compute_check_digit,
    upce_to_upca,
    validate_barcode,
)

pytestmark = pytest.mark.grp_barcode


@pytest.mark.parametrize(
    "code, fmt, kind",
    [
        ("4006381333931", EAN_13, EAN_13),
        ("4006381333931", None, EAN_13),
        ("036000291452", UPC_A, UPC_A),
        ("036000291452", None, UPC_A),
        ("96385074", EAN_8, EAN_8),
        ("96385074", None, EAN_8),
        ("01234569", UPC_E, UPC_E),
        ("16543210", UPC_E, UPC_E),
        ("20000197", UPC_E, UPC_E),
    ],
)
def test_known_good_codes(code, fmt, kind):
    r = validate_barcode(code, fmt)
    assert isinstance(r, BarcodeValid)
    assert r.ok is True
    assert r.kind == kind
    assert r.normalized == code


@pytest.mark.parametrize(
    "code, fmt, expected",
    [
        ("4006381333932", EAN_13, 1),
        ("036000291453", UPC_A, 2),
        ("96385075", EAN_8, 4),
        ("01234565", UPC_E, 9),
        ("16543215", UPC_E, 0),
        ("20000190", UPC_E, 7),
    ],
)
def test_bad_check_digit_reports_expected(code, fmt, expected):
    r = validate_barcode(code, fmt)
    assert isinstance(r, BarcodeInvalid)
    assert r.ok is False
    assert r.kind == fmt
    assert r.expected_check_digit == expected
    assert f"expected check digit {expected}" in r.reason


def test_reason_names_the_symbology():
    r = validate_barcode("4006381333932", EAN_13)
    assert r.reason == "Invalid EAN-13 checksum (expected check digit 1)"


def test_any_single_digit_change_is_rejected():
    good = "4006381333931"
    for pos in range(len(good)):
        for delta in range(1, 10):
            d = (int(good[pos]) + delta) % 10
            bad = good[:pos] + str(d) + good[pos + 1 :]
            r = validate_barcode(bad, EAN_13)
            assert r.ok is False, bad


def test_unhinted_eight_digits_fall_back_to_upce():
    # 01234565 同时满足 EAN-8，主解释优先
    assert validate_barcode("01234565").kind == EAN_8

    # EAN-8 期望位是 5；按 UPC-E 展开 012300000456，前 11 位算出 9，校验通过
    r = validate_barcode("01234569")
    assert r.ok is True
    assert r.kind == UPC_E

    r = validate_barcode("16543210")
    assert r.ok is True
    assert r.kind == UPC_E


def test_unhinted_eight_digits_both_fail_reports_ean8():
    r = validate_barcode("96385075")
    assert isinstance(r, BarcodeInvalid)
    assert r.kind == EAN_8
    assert r.expected_check_digit == 4


@pytest.mark.parametrize(
    "code, expanded",
    [
        # NS0: 0 d0 d1 d2 00000 d3 d4 d5
        ("01234569", "012300000456"),
        # NS1: 0 d0..d3 00000 d4 d5
        ("16543210", "065430000021"),
        # NS2: 0 d0..d4 00000 d5
        ("20000197", "000001000009"),
    ],
)
def test_upce_expansion_by_number_system(code, expanded):
    assert upce_to_upca(code) == expanded
    assert len(expanded) == 12


def test_upce_expansion_rejects_malformed():
    assert upce_to_upca("12345") is None
    assert upce_to_upca("abcdefgh") is None
    assert upce_to_upca("31234565") is None


def test_upce_last_data_digit_outside_checksum():
    # 校验只看展开后的前 11 位，d5 不参与
    assert compute_check_digit(UPC_E, "01234569") == 9
    assert compute_check_digit(UPC_E, "01234509") == 9
    assert compute_check_digit(UPC_E, "01234560") == 9


def test_upce_number_system_out_of_range():
    r = validate_barcode("91234565", UPC_E)
    assert isinstance(r, BarcodeInvalid)
    assert "number system" in r.reason
    assert r.expected_check_digit is None


def test_wrong_length_for_hint():
    r = validate_barcode("12345", EAN_13)
    assert r.ok is False
    assert r.reason == "EAN-13 must be 13 digits"


def test_compute_check_digit():
    assert compute_check_digit(EAN_13, "4006381333930") == 1
    assert compute_check_digit(UPC_A, "036000291450") == 2
    assert compute_check_digit(EAN_8, "96385070") == 4
    assert compute_check_digit(EAN_13, "123") is None


def test_whitespace_is_trimmed():
    r = validate_barcode("  4006381333931 \n")
    assert r.ok is True
    assert r.normalized == "4006381333931"


def test_empty_is_rejected():
    assert validate_barcode("").ok is False
    assert validate_barcode("   ").ok is False


@pytest.mark.parametrize("fmt", [CODE_128, QR_CODE])
def test_opaque_codes_length_bounds(fmt):
    assert validate_barcode("ABC", fmt).ok is False
    assert validate_barcode("ABCD", fmt).ok is True
    assert validate_barcode("X" * 80, fmt).ok is True
    too_long = validate_barcode("X" * 81, fmt)
    assert too_long.ok is False
    assert "too long" in too_long.reason


def test_unhinted_text_is_treated_as_code128():
    r = validate_barcode("RENT-00042")
    assert r.ok is True
    assert r.kind == CODE_128
