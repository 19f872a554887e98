"""例外定義。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class RestErrorContext:
    """例外に付随する共通コンテキスト。

    Attributes:
        method: HTTPメソッド。
        route: ルートテンプレート。
        url: リクエストURL。
        status: HTTPステータス。
    """

    method: str | None = None
    route: str | None = None
    url: str | None = None
    status: int | None = None

    def describe(self) -> str:
        """ログ・例外文言向けの要約を返す。"""

        parts = [part for part in (self.method, self.route) if part]
        if self.status is not None:
            parts.append(f"[{self.status}]")
        return " ".join(parts)


class RestError(Exception):
    """ライブラリ例外の基底クラス。

    Attributes:
        origin: 例外発生元。
        context: 追加コンテキスト。
    """

    def __init__(
        self,
        message: str,
        *,
        origin: str,
        context: RestErrorContext | None = None,
    ) -> None:
        super().__init__(message)
        self.origin = origin
        self.context = context or RestErrorContext()
        self.message = message


class RestConfigurationError(RestError):
    """送信前の設定不備（トークン未設定など）。"""

    def __init__(self, message: str, *, context: RestErrorContext | None = None) -> None:
        super().__init__(message, origin="client_validation", context=context)


class RestTransportError(RestError):
    """HTTP通信層の例外。"""

    def __init__(self, message: str, *, context: RestErrorContext | None = None) -> None:
        super().__init__(message, origin="transport", context=context)


class RestTimeoutError(RestTransportError):
    """リクエストタイムアウト。再試行しない。"""


class RestNetworkError(RestTransportError):
    """接続断などの通信失敗。再試行対象。"""


class RestApiError(RestError):
    """非2xx応答由来の例外。

    Attributes:
        status: HTTPステータス。
        code: 応答本文のエラーコード。
        response: 応答本文（JSON解析できた場合）。
    """

    def __init__(
        self,
        message: str,
        *,
        status: int,
        context: RestErrorContext,
        code: int | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message, origin="server_response", context=context)
        self.status = status
        self.code = code
        self.response = response

    def __str__(self) -> str:
        return f"{self.context.describe()}: {self.message}"


class RestClientError(RestApiError):
    """429以外の4xx。再試行しない。"""


class RestServerError(RestApiError):
    """5xx。再試行対象。"""


class RestRateLimitError(RestApiError):
    """429（レート制限超過）。

    Attributes:
        retry_after: 再試行までの待機秒。
        is_global: グローバル制限か。
        scope: X-RateLimit-Scope の値。
    """

    def __init__(
        self,
        message: str,
        *,
        context: RestErrorContext,
        retry_after: float,
        is_global: bool,
        scope: str | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(
            message,
            status=429,
            context=context,
            response=response,
        )
        self.retry_after = retry_after
        self.is_global = is_global
        self.scope = scope


class RestRetryLimitExceeded(RestError):
    """再試行上限到達。最後の再試行対象例外を保持する。

    Attributes:
        last_error: 最後に発生した例外。
        attempts: 送信回数。
    """

    def __init__(self, *, last_error: RestError, attempts: int) -> None:
        super().__init__(
            f"再試行上限に達しました（{attempts}回送信）: {last_error}",
            origin=last_error.origin,
            context=last_error.context,
        )
        self.last_error = last_error
        self.attempts = attempts


class RestRateLimitExceeded(RestRetryLimitExceeded):
    """429が続き再試行上限に達した。

    Attributes:
        retry_after: 最後の429が示した待機秒。
        is_global: 最後の429がグローバル制限か。
        scope: 最後の429の X-RateLimit-Scope。
    """

    def __init__(self, *, last_error: RestRateLimitError, attempts: int) -> None:
        super().__init__(last_error=last_error, attempts=attempts)
        self.retry_after = last_error.retry_after
        self.is_global = last_error.is_global
        self.scope = last_error.scope
