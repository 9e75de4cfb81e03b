"""flags ライブラリの例外型定義"""

from __future__ import annotations


class FeatureFlagError(Exception):
    """flags ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FeatureFlagErrorCodes:
    """エラーコード定数。"""

    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"
    INVALID_VALUE: str = "INVALID_VALUE"
    READ_FILE: str = "READ_FILE_ERROR"
    WRITE_FILE: str = "WRITE_FILE_ERROR"
    PARSE: str = "PARSE_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
