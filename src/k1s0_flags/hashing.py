"""ロールアウト用の決定的ハッシュ"""

from __future__ import annotations

BUCKET_COUNT = 100

_UINT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _to_int32(value: int) -> int:
    value &= _UINT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def _utf16_units(text: str) -> list[int]:
    data = text.encode("utf-16-le", "surrogatepass")
    return [int.from_bytes(data[i : i + 2], "little") for i in range(0, len(data), 2)]


def hash_string(text: str) -> int:
    """文字列を符号付き 32bit の多項式ローリングハッシュに変換する。

    UTF-16 コード単位ごとに ``h = h * 31 + unit`` を計算し、各ステップで
    32bit に畳み込む。他言語の実装と同じ値になる。
    """
    h = 0
    for unit in _utf16_units(text):
        h = _to_int32((h << 5) - h + unit)
    return h


def bucket(key: str) -> int:
    """キーを [0, 100) のバケットに割り当てる。"""
    return abs(hash_string(key)) % BUCKET_COUNT


def assign_bucket(user_id: str, flag_key: str) -> int:
    """ユーザーとフラグの組をバケットに割り当てる。"""
    return bucket(user_id + flag_key)
