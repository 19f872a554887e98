"""バケット単位の逐次実行キュー。"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from discordrest.config import RestConfig
from discordrest.error_fields import build_error_message
from discordrest.errors import (
    RestClientError,
    RestError,
    RestNetworkError,
    RestRateLimitError,
    RestRateLimitExceeded,
    RestRetryLimitExceeded,
    RestServerError,
    RestTransportError,
)
from discordrest.hashes import BucketHashTable
from discordrest.http import (
    RateLimitHeaders,
    full_jitter_backoff,
    is_server_error_status,
    parse_rate_limit_headers,
)
from discordrest.request import Request
from discordrest.types import RawRequest

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 1.0


@dataclass(slots=True)
class GlobalRateState:
    """クライアント全体で共有するグローバル制限状態。

    Attributes:
        blocked: グローバル制限中か。
        reset_at: 制限解除時刻（monotonic秒）。
    """

    blocked: bool = False
    reset_at: float = 0.0

    def is_limited(self) -> bool:
        """現在グローバル制限中かを返す。"""

        return self.blocked and time.monotonic() < self.reset_at

    def block_until(self, reset_at: float) -> None:
        """``reset_at`` まで全バケットの送信を止める。"""

        if self.blocked:
            self.reset_at = max(self.reset_at, reset_at)
        else:
            self.reset_at = reset_at
        self.blocked = True

    async def wait(self) -> None:
        """制限解除まで待機する。待機中に延長された場合も追従する。"""

        while self.blocked:
            delay = self.reset_at - time.monotonic()
            if delay <= 0:
                self.blocked = False
                return
            await asyncio.sleep(delay)


def decode_response_body(response: httpx.Response) -> Any:
    """応答本文を解析する。JSONでない場合は文字列かバイト列で返す。"""

    if response.status_code == 204 or not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "json" in content_type or response.content.lstrip()[:1] in (b"{", b"["):
        try:
            return response.json()
        except ValueError:
            return response.text
    if content_type.startswith("text/"):
        return response.text
    return response.content


@dataclass(slots=True)
class _PendingRequest:
    request: Request
    future: asyncio.Future[Any]
    attempts: int = 0


class SequentialBucket:
    """1バケットのリクエストを1件ずつ順番に送信する。

    キュー先頭から取り出して送信し、応答ヘッダで残り回数・リセット時刻を
    更新してから呼び出し元へ結果を返す。429/5xx/通信失敗は先頭へ戻して
    再試行するため、呼び出し順は再試行を挟んでも保たれる。

    Attributes:
        hash: バケットハッシュ（未確定時はルートID）。
        major_parameter: メジャーパラメータ。
        limit: バケット上限回数。
        remaining: 残り回数。
        reset_at: リセット時刻（monotonic秒）。
    """

    def __init__(
        self,
        *,
        hash: str,
        major_parameter: str,
        client: httpx.AsyncClient,
        config: RestConfig,
        hashes: BucketHashTable,
        global_state: GlobalRateState,
        on_request: Callable[[RawRequest], None] | None = None,
    ) -> None:
        self.hash = hash
        self.major_parameter = major_parameter
        self.limit = 1
        self.remaining = 1
        self.reset_at = 0.0
        self._client = client
        self._config = config
        self._hashes = hashes
        self._global = global_state
        self._on_request = on_request
        self._queue: deque[_PendingRequest] = deque()
        self._task: asyncio.Task[None] | None = None

    @property
    def id(self) -> str:
        """バケットキー（``hash:major_parameter``）。"""

        return f"{self.hash}:{self.major_parameter}"

    @property
    def processing(self) -> bool:
        """キュー処理中か。"""

        return self._task is not None and not self._task.done()

    @property
    def throttled(self) -> bool:
        """バケット単位の制限で待機が必要か。"""

        return self.remaining <= 0 and time.monotonic() < self.reset_at

    def __len__(self) -> int:
        return len(self._queue)

    async def add(self, request: Request) -> Any:
        """リクエストを末尾へ追加し、結果を待つ。

        Args:
            request: 送信するリクエスト。

        Returns:
            解析済みの応答本文。
        """

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._queue.append(_PendingRequest(request=request, future=future))
        if not self.processing:
            self._task = asyncio.create_task(self._drain(), name=f"bucket:{self.id}")
        return await future

    async def close(self) -> None:
        """処理を止め、未送信の要求をキャンセルする。"""

        task = self._task
        self._task = None
        while self._queue:
            pending = self._queue.popleft()
            if not pending.future.done():
                pending.future.cancel()
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _drain(self) -> None:
        while self._queue:
            await self._wait_until_ready()
            pending = self._queue.popleft()
            if pending.future.done():
                continue
            try:
                await self._execute(pending)
            except asyncio.CancelledError:
                pending.future.cancel()
                raise
            except Exception as exc:  # noqa: BLE001
                self._reject(pending, exc)

    async def _wait_until_ready(self) -> None:
        while True:
            if self._global.blocked:
                await self._global.wait()
                continue
            if self.throttled:
                delay = self.reset_at - time.monotonic()
                logger.debug("バケット %s を %.3f 秒待機します", self.id, delay)
                await asyncio.sleep(delay)
                continue
            if self.remaining <= 0:
                self.remaining = self.limit
            return

    def _reset_timestamp(self, seconds: float) -> float:
        return time.monotonic() + seconds - self._config.offset_seconds

    async def _execute(self, pending: _PendingRequest) -> None:
        request = pending.request
        pending.attempts += 1
        self.remaining = max(0, self.remaining - 1)
        started = time.monotonic()
        try:
            response = await request.send(self._client, timeout=self._config.timeout_seconds)
        except RestNetworkError as exc:
            await self._retry_or_reject(pending, exc)
            return
        except RestTransportError as exc:
            self._reject(pending, exc)
            return

        headers = parse_rate_limit_headers(response.headers)
        self._apply_headers(request, headers)
        if self._on_request is not None:
            self._notify(
                RawRequest(
                    method=request.method,
                    url=request.url,
                    route=request.route,
                    auth=request.options.auth,
                    body=request.options.body,
                    files=request.options.files,
                    latency=time.monotonic() - started,
                    status=response.status_code,
                    response=response,
                    request=request,
                )
            )

        status = response.status_code
        body = decode_response_body(response)
        if 200 <= status < 300:
            self._resolve(pending, body)
        elif status == 429:
            await self._handle_rate_limit(pending, headers, body)
        elif is_server_error_status(status):
            error = RestServerError(
                build_error_message(body),
                status=status,
                context=request.error_context(status),
                code=_error_code(body),
                response=body,
            )
            await self._retry_or_reject(pending, error)
        else:
            self._reject(
                pending,
                RestClientError(
                    build_error_message(body),
                    status=status,
                    context=request.error_context(status),
                    code=_error_code(body),
                    response=body,
                ),
            )

    def _notify(self, raw: RawRequest) -> None:
        callback = self._on_request
        if callback is None:
            return
        try:
            callback(raw)
        except Exception:  # noqa: BLE001
            logger.exception("on_request コールバックで例外が発生しました: %s %s", raw.method, raw.route)

    def _apply_headers(self, request: Request, headers: RateLimitHeaders) -> None:
        if headers.limit is not None:
            self.limit = headers.limit
        if headers.remaining is not None:
            self.remaining = max(0, headers.remaining)
        if headers.reset_after is not None:
            self.reset_at = self._reset_timestamp(headers.reset_after)
        if headers.bucket is not None and self._hashes.set(request.id, headers.bucket):
            logger.debug("ルート %s のバケットハッシュを %s に更新しました", request.id, headers.bucket)

    async def _handle_rate_limit(
        self,
        pending: _PendingRequest,
        headers: RateLimitHeaders,
        body: Any,
    ) -> None:
        request = pending.request
        payload = body if isinstance(body, Mapping) else {}
        retry_after = headers.retry_after
        if retry_after is None and payload.get("retry_after") is not None:
            retry_after = max(0.0, float(payload["retry_after"]))
        if retry_after is None:
            retry_after = headers.reset_after if headers.reset_after is not None else DEFAULT_RETRY_AFTER
        is_global = headers.is_global or payload.get("global") is True

        reset_at = self._reset_timestamp(retry_after)
        if is_global:
            logger.warning(
                "グローバルレート制限に達しました: %s %s（%.3f 秒待機）",
                request.method,
                request.route,
                retry_after,
            )
            self._global.block_until(reset_at)
        else:
            logger.debug(
                "レート制限に達しました: %s（scope=%s, %.3f 秒待機）",
                self.id,
                headers.scope,
                retry_after,
            )
            self.remaining = 0
            self.reset_at = reset_at

        error = RestRateLimitError(
            str(payload.get("message") or "You are being rate limited."),
            context=request.error_context(429),
            retry_after=retry_after,
            is_global=is_global,
            scope=headers.scope,
            response=body,
        )
        await self._retry_or_reject(pending, error)

    async def _retry_or_reject(self, pending: _PendingRequest, error: RestError) -> None:
        if pending.attempts > self._config.retry_limit:
            if isinstance(error, RestRateLimitError):
                exhausted: RestRetryLimitExceeded = RestRateLimitExceeded(last_error=error, attempts=pending.attempts)
            else:
                exhausted = RestRetryLimitExceeded(last_error=error, attempts=pending.attempts)
            self._reject(pending, exhausted)
            return
        logger.debug(
            "再試行します（%d/%d）: %s",
            pending.attempts,
            self._config.retry_limit,
            error,
        )
        self._queue.appendleft(pending)
        if isinstance(error, RestRateLimitError):
            return
        backoff = full_jitter_backoff(
            attempt=pending.attempts,
            base=self._config.retry_base_delay,
            cap=self._config.retry_cap_delay,
        )
        if backoff > 0:
            await asyncio.sleep(backoff)

    @staticmethod
    def _resolve(pending: _PendingRequest, value: Any) -> None:
        if not pending.future.done():
            pending.future.set_result(value)

    @staticmethod
    def _reject(pending: _PendingRequest, exc: BaseException) -> None:
        if not pending.future.done():
            pending.future.set_exception(exc)


def _error_code(body: Any) -> int | None:
    if isinstance(body, Mapping) and isinstance(body.get("code"), int):
        return body["code"]
    return None
