"""送信1回分のリクエスト表現。"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx

from discordrest.config import RestConfig
from discordrest.errors import (
    RestErrorContext,
    RestNetworkError,
    RestTimeoutError,
    RestTransportError,
)
from discordrest.http import (
    HEADER_AUDIT_LOG_REASON,
    build_request_headers,
    encode_audit_log_reason,
    should_retry_transport_error,
)
from discordrest.routing import classify
from discordrest.types import FileContent, RequestOptions

MAX_SAFE_INTEGER = 2**53 - 1

MultipartFiles = list[tuple[str, tuple[str, bytes, str | None]]]


def _stringify_large_ints(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value) if abs(value) > MAX_SAFE_INTEGER else value
    if isinstance(value, Mapping):
        return {key: _stringify_large_ints(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_stringify_large_ints(item) for item in value]
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value, "f")
    raise TypeError(f"JSONへ変換できない型です: {type(value).__name__}")


def encode_json_body(body: Any) -> str:
    """本文をJSON文字列へ変換する。

    安全整数範囲（±2^53-1）を超える整数とDecimalは、桁落ちや指数表記を
    避けるため10進文字列として出力する。

    Args:
        body: JSON化する値。

    Returns:
        JSON文字列。
    """

    return json.dumps(
        _stringify_large_ints(body),
        ensure_ascii=False,
        separators=(",", ":"),
        default=_json_default,
    )


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return [_query_value(item) for item in value]
    return str(value)


def build_url(base_url: str, path: str, query: Mapping[str, Any]) -> str:
    """ベースURL・パス・クエリから送信URLを組み立てる。"""

    params = {key: _query_value(value) for key, value in query.items() if value is not None}
    url = httpx.URL(base_url + path)
    if params:
        url = url.copy_merge_params(params)
    return str(url)


def build_multipart(
    files: tuple[FileContent | None, ...],
    body: Any,
) -> tuple[MultipartFiles, dict[str, str] | None]:
    """添付ファイルとJSON本文からmultipart要素を組み立てる。"""

    parts: MultipartFiles = []
    for index, item in enumerate(files):
        if item is None:
            continue
        parts.append((f"files[{index}]", (item.name, item.file, item.content_type)))
    data = {"payload_json": encode_json_body(body)} if body is not None else None
    return parts, data


@dataclass(frozen=True, slots=True)
class Request:
    """送信1回分のリクエスト。生成後は変更しない。

    Attributes:
        method: 大文字のHTTPメソッド。
        path: APIパス。
        url: クエリを含む送信URL。
        route: ルートテンプレート。
        major_parameter: メジャーパラメータ。
        headers: 送信ヘッダ。
        options: 生成元のオプション。
        content: JSON本文（multipart時はNone）。
        data: multipartのフォーム項目。
        files: multipartのファイル項目。
    """

    method: str
    path: str
    url: str
    route: str
    major_parameter: str
    headers: dict[str, str]
    options: RequestOptions
    content: bytes | None = None
    data: dict[str, str] | None = None
    files: MultipartFiles | None = None

    @property
    def id(self) -> str:
        """ハッシュ対応表のキー。"""

        return f"{self.method}:{self.route}"

    @classmethod
    def build(
        cls,
        config: RestConfig,
        method: str,
        path: str,
        options: RequestOptions | None = None,
        *,
        authorization: str | None = None,
        now_ms: int | None = None,
    ) -> Request:
        """設定とオプションからリクエストを生成する。

        Args:
            config: 共通設定。
            method: HTTPメソッド。
            path: APIパス。
            options: リクエストオプション。
            authorization: Authorizationヘッダ値。
            now_ms: ルート分類に使う現在時刻（UNIXミリ秒）。

        Returns:
            生成したリクエスト。
        """

        options = options or RequestOptions()
        method = method.upper()
        headers = build_request_headers(config.user_agent)
        headers.update(options.headers)
        if options.reason:
            headers[HEADER_AUDIT_LOG_REASON] = encode_audit_log_reason(options.reason)
        if authorization is not None:
            headers["Authorization"] = authorization

        content: bytes | None = None
        data: dict[str, str] | None = None
        files: MultipartFiles | None = None
        if any(item is not None for item in options.files):
            files, data = build_multipart(options.files, options.body)
        elif options.body is not None:
            content = encode_json_body(options.body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        info = classify(method, path, now_ms=now_ms)
        return cls(
            method=method,
            path=path,
            url=build_url(config.base_url, path, options.query),
            route=info.route,
            major_parameter=info.major_parameter,
            headers=headers,
            options=options,
            content=content,
            data=data,
            files=files,
        )

    def error_context(self, status: int | None = None) -> RestErrorContext:
        """例外用コンテキストを返す。"""

        return RestErrorContext(method=self.method, route=self.route, url=self.url, status=status)

    async def send(self, client: httpx.AsyncClient, *, timeout: float) -> httpx.Response:
        """HTTP要求を1回だけ送信する。

        Args:
            client: 送信に使うhttpxクライアント。
            timeout: タイムアウト秒。

        Returns:
            HTTP応答。ステータスの判定は呼び出し側が行う。

        Raises:
            RestTimeoutError: タイムアウトした場合。
            RestNetworkError: 再試行可能な通信失敗の場合。
            RestTransportError: その他の通信失敗の場合。
        """

        try:
            return await asyncio.wait_for(
                client.request(
                    self.method,
                    self.url,
                    content=self.content,
                    data=self.data,
                    files=self.files,
                    headers=self.headers,
                    timeout=timeout,
                ),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise RestTimeoutError(
                f"リクエストがタイムアウトしました（>{timeout * 1000:.0f}ms）: {self.method} {self.url}",
                context=self.error_context(),
            ) from exc
        except httpx.TransportError as exc:
            klass = RestNetworkError if should_retry_transport_error(exc) else RestTransportError
            raise klass(
                f"通信に失敗しました: {self.method} {self.url}: {exc}",
                context=self.error_context(),
            ) from exc
