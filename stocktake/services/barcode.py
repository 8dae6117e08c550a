# stocktake/services/barcode.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Union

from stocktake.core.config import get_settings

# 扫码枪上报的码制提示（与前端扫码组件一致）
EAN_13 = "EAN_13"
EAN_8 = "EAN_8"
UPC_A = "UPC_A"
UPC_E = "UPC_E"
CODE_128 = "CODE_128"
QR_CODE = "QR_CODE"

CHECKSUM_FORMATS = (EAN_13, EAN_8, UPC_A, UPC_E)

_LABELS = {EAN_13: "EAN-13", EAN_8: "EAN-8", UPC_A: "UPC-A", UPC_E: "UPC-E"}
_LENGTHS = {EAN_13: 13, EAN_8: 8, UPC_A: 12, UPC_E: 8}


@dataclass(frozen=True)
class BarcodeValid:
    """
    校验通过：
    - normalized: 去首尾空白后的码
    - kind:       实际命中的码制（EAN_13 / EAN_8 / UPC_A / UPC_E / CODE_128 / QR_CODE）
    """

    normalized: str
    kind: str
    ok: bool = True


@dataclass(frozen=True)
class BarcodeInvalid:
    """
    校验失败：reason 给人看；校验位错时带 expected_check_digit，
    前端据此提示“请重扫”，而不是静默丢弃。
    """

    reason: str
    kind: Optional[str] = None
    expected_check_digit: Optional[int] = None
    ok: bool = False


BarcodeResult = Union[BarcodeValid, BarcodeInvalid]


# ------------------------------ 校验位 ------------------------------


def _weighted_check(body: List[int], first_weight: int) -> int:
    other = 4 - first_weight  # 1 ↔ 3
    s = sum(d * (first_weight if i % 2 == 0 else other) for i, d in enumerate(body))
    return (10 - (s % 10)) % 10


def ean13_check_digit(body: List[int]) -> int:
    """前 12 位：下标偶数 ×1、奇数 ×3。"""
    return _weighted_check(body[:12], 1)


def ean8_check_digit(body: List[int]) -> int:
    """前 7 位：下标偶数 ×3、奇数 ×1（与 EAN-13 相反）。"""
    return _weighted_check(body[:7], 3)


def upca_check_digit(body: List[int]) -> int:
    """
    UPC-A = EAN-13 去掉前导 0（右对齐子集）：
    左补一个 0 后按 EAN-13 计算，等价于首位 ×3。
    """
    return ean13_check_digit([0] + list(body[:11]))


def upce_to_upca(code: str) -> Optional[str]:
    """
    UPC-E(8) → UPC-A 展开（12 位，不含校验位），按码制位补零：
      NS0: 0 d0 d1 d2 00000 d3 d4 d5
      NS1: 0 d0 d1 d2 d3 00000 d4 d5
      NS2: 0 d0 d1 d2 d3 d4 00000 d5
    码制位 > 2 或结构不对返回 None。
    """
    s = (code or "").strip()
    if len(s) != 8 or not s.isdigit():
        return None
    ns = int(s[0])
    d = s[1:7]
    if ns == 0:
        return "0" + d[0:3] + "00000" + d[3:6]
    if ns == 1:
        return "0" + d[0:4] + "00000" + d[4:6]
    if ns == 2:
        return "0" + d[0:5] + "00000" + d[5]
    return None


def compute_check_digit(fmt: str, code: str) -> Optional[int]:
    """给定码制与完整码，算出“应为”的校验位；无法计算返回 None。"""
    s = (code or "").strip()
    if not s.isdigit() or len(s) != _LENGTHS.get(fmt, -1):
        return None
    digits = [int(c) for c in s]
    if fmt == EAN_13:
        return ean13_check_digit(digits)
    if fmt == EAN_8:
        return ean8_check_digit(digits)
    if fmt == UPC_A:
        return upca_check_digit(digits)
    if fmt == UPC_E:
        expanded = upce_to_upca(s)
        if expanded is None:
            return None
        # 展开的前 11 位：下标偶数 ×1、奇数 ×3
        return _weighted_check([int(c) for c in expanded][:11], 1)
    return None


# ------------------------------ 校验入口 ------------------------------


def _check_numeric(s: str, fmt: str) -> BarcodeResult:
    label = _LABELS[fmt]
    if not s.isdigit() or len(s) != _LENGTHS[fmt]:
        return BarcodeInvalid(reason=f"{label} must be {_LENGTHS[fmt]} digits", kind=fmt)
    expected = compute_check_digit(fmt, s)
    if expected is None:
        # 仅 UPC-E：码制位越界 / 无法展开
        return BarcodeInvalid(reason=f"Invalid {label} number system digit {s[0]}", kind=fmt)
    if int(s[-1]) != expected:
        return BarcodeInvalid(
            reason=f"Invalid {label} checksum (expected check digit {expected})",
            kind=fmt,
            expected_check_digit=expected,
        )
    return BarcodeValid(normalized=s, kind=fmt)


def _check_opaque(s: str, fmt: str) -> BarcodeResult:
    settings = get_settings()
    if len(s) < settings.BARCODE_MIN_LEN:
        return BarcodeInvalid(reason=f"{fmt} too short", kind=fmt)
    if len(s) > settings.BARCODE_MAX_LEN:
        return BarcodeInvalid(reason=f"{fmt} too long", kind=fmt)
    return BarcodeValid(normalized=s, kind=fmt)


def validate_barcode(raw: str, fmt: Optional[str] = None) -> BarcodeResult:
    """
    扫码结果校验（纯函数，无副作用）：
      1) 有码制提示：按提示校验（EAN/UPC 校验位；其它只做长度护栏）
      2) 无提示的纯数字：13 → EAN-13，12 → UPC-A，8 → 先 EAN-8 再回退 UPC-E
      3) 其它：按无校验位码处理（长度 4..80）
    """
    s = (raw or "").strip()
    if not s:
        return BarcodeInvalid(reason="Empty barcode")

    hint = (fmt or "").strip().upper() or None
    if hint in CHECKSUM_FORMATS:
        return _check_numeric(s, hint)
    if hint is not None:
        return _check_opaque(s, hint)

    if s.isdigit():
        if len(s) == 13:
            return _check_numeric(s, EAN_13)
        if len(s) == 12:
            return _check_numeric(s, UPC_A)
        if len(s) == 8:
            ean8 = _check_numeric(s, EAN_8)
            if ean8.ok:
                return ean8
            upce = _check_numeric(s, UPC_E)
            if upce.ok:
                return upce
            # 两种都不过：按主解释 EAN-8 报期望位
            return ean8

    return _check_opaque(s, CODE_128)
