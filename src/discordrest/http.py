"""HTTP実行補助。"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping

HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET_AFTER = "X-RateLimit-Reset-After"
HEADER_BUCKET = "X-RateLimit-Bucket"
HEADER_GLOBAL = "X-RateLimit-Global"
HEADER_SCOPE = "X-RateLimit-Scope"
HEADER_RETRY_AFTER = "Retry-After"
HEADER_AUDIT_LOG_REASON = "X-Audit-Log-Reason"


@dataclass(slots=True)
class RateLimitHeaders:
    """応答ヘッダから読み取ったレート制限情報。

    Attributes:
        limit: バケットの上限回数。
        remaining: 残り回数。
        reset_after: リセットまでの秒。
        bucket: サーバー側バケットハッシュ。
        is_global: グローバル制限フラグ。
        scope: 制限スコープ（user/global/shared）。
        retry_after: Retry-After 秒。
    """

    limit: int | None = None
    remaining: int | None = None
    reset_after: float | None = None
    bucket: str | None = None
    is_global: bool = False
    scope: str | None = None
    retry_after: float | None = None


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _parse_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value.strip())
    except ValueError:
        return None


def parse_retry_after(value: str | None) -> float | None:
    """Retry-Afterヘッダを秒へ変換する。"""

    if not value:
        return None
    text = value.strip()
    seconds = _parse_float(text)
    if seconds is not None:
        return max(0.0, seconds)
    try:
        dt = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    return max(0.0, dt.timestamp() - time.time())


def parse_rate_limit_headers(headers: Mapping[str, str]) -> RateLimitHeaders:
    """X-RateLimit-* ヘッダを解析する。

    値が欠落・不正な項目は None のまま返す。

    Args:
        headers: 応答ヘッダ（大文字小文字を区別しないマッピング）。

    Returns:
        解析結果。
    """

    global_flag = headers.get(HEADER_GLOBAL)
    return RateLimitHeaders(
        limit=_parse_int(headers.get(HEADER_LIMIT)),
        remaining=_parse_int(headers.get(HEADER_REMAINING)),
        reset_after=_parse_float(headers.get(HEADER_RESET_AFTER)),
        bucket=headers.get(HEADER_BUCKET) or None,
        is_global=global_flag is not None and global_flag.strip().lower() == "true",
        scope=headers.get(HEADER_SCOPE) or None,
        retry_after=parse_retry_after(headers.get(HEADER_RETRY_AFTER)),
    )


def is_server_error_status(status_code: int) -> bool:
    """再試行対象の5xxかを判定する。"""

    return 500 <= status_code < 600


def should_retry_transport_error(exc: Exception) -> bool:
    """通信例外の再試行可否を判定する。タイムアウトは対象外。"""

    if isinstance(exc, httpx.TimeoutException):
        return False
    retryable = (
        httpx.ConnectError,
        httpx.ReadError,
        httpx.WriteError,
        httpx.RemoteProtocolError,
    )
    return isinstance(exc, retryable)


def full_jitter_backoff(*, attempt: int, base: float, cap: float) -> float:
    """full jitter で待機秒を計算する。"""

    if base <= 0:
        return 0.0
    upper = min(cap, base * (2 ** attempt))
    return random.uniform(0.0, upper)


def encode_audit_log_reason(reason: str) -> str:
    """監査ログ理由をパーセントエンコードする。"""

    return quote(reason, safe="!*'()")


def build_request_headers(user_agent: str) -> dict[str, str]:
    """標準ヘッダを構築する。"""

    return {
        "User-Agent": user_agent,
    }
