"""公開クライアント実装。"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

import httpx

from discordrest.bucket import GlobalRateState, SequentialBucket
from discordrest.config import (
    DEFAULT_BASE_URL,
    DEFAULT_HASH_LIFETIME,
    DEFAULT_HASH_SWEEP_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_RETRY_LIMIT,
    DEFAULT_USER_AGENT,
    RestConfig,
)
from discordrest.errors import RestConfigurationError
from discordrest.hashes import BucketHashTable
from discordrest.request import Request
from discordrest.types import FileContent, RawRequest, RequestOptions

logger = logging.getLogger(__name__)

_TOKEN_PREFIXES = ("Bot ", "Bearer ")


def normalize_token(token: str | None) -> str | None:
    """トークンへ ``Bot `` 接頭辞を補う。``Bearer `` 付きはそのまま返す。"""

    if not token:
        return None
    if token.startswith(_TOKEN_PREFIXES):
        return token
    return f"Bot {token}"


class AsyncRestClient:
    """レート制限を考慮して要求を振り分ける非同期クライアント。

    ルートとメジャーパラメータからバケットを決め、バケットごとに1件ずつ
    送信する。異なるバケットの要求は並行して進む。
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        ratelimiter_offset: float = 0.0,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_MS,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        user_agent: str = DEFAULT_USER_AGENT,
        retry_base_delay: float = 0.0,
        retry_cap_delay: float = 8.0,
        hash_lifetime: float | None = DEFAULT_HASH_LIFETIME,
        hash_sweep_interval: float = DEFAULT_HASH_SWEEP_INTERVAL,
        on_request: Callable[[RawRequest], None] | None = None,
        http_client: httpx.AsyncClient | None = None,
        http2: bool = False,
        proxy: str | None = None,
        limits: httpx.Limits | None = None,
    ) -> None:
        """クライアントを初期化する。

        Args:
            token: Botトークン。接頭辞がなければ ``Bot `` を補う。
            base_url: APIベースURL。
            ratelimiter_offset: リセット時刻から差し引く補正ミリ秒。
            request_timeout: タイムアウトミリ秒。
            retry_limit: 再試行上限回数。
            user_agent: User-Agent。
            retry_base_delay: 5xx/通信例外時バックオフの基準秒。
            retry_cap_delay: バックオフ上限秒。
            hash_lifetime: バケットハッシュの保持秒。Noneで破棄しない。
            hash_sweep_interval: ハッシュ掃除の最小間隔秒。
            on_request: HTTP交換ごとに呼ぶコールバック。例外はログに記録して無視する。
            http_client: 外部httpx.AsyncClient。
            http2: HTTP/2有効化。
            proxy: プロキシ。
            limits: httpx接続制御。
        """

        if retry_limit < 0:
            raise ValueError("retry_limit は0以上を指定してください。")
        if request_timeout <= 0:
            raise ValueError("request_timeout は0より大きい値を指定してください。")
        if retry_base_delay < 0 or retry_cap_delay < 0:
            raise ValueError("retry_base_delay/retry_cap_delay は0以上を指定してください。")
        if hash_lifetime is not None and hash_lifetime <= 0:
            raise ValueError("hash_lifetime は0より大きい値かNoneを指定してください。")

        self._owns_client = http_client is None
        if http_client is None:
            client_kwargs: dict[str, Any] = {
                "base_url": base_url,
                "http2": http2,
            }
            if proxy is not None:
                client_kwargs["proxy"] = proxy
            if limits is not None:
                client_kwargs["limits"] = limits
            self._http_client = httpx.AsyncClient(
                **client_kwargs,
            )
        else:
            self._http_client = http_client

        self._config = RestConfig(
            base_url=base_url,
            ratelimiter_offset=ratelimiter_offset,
            request_timeout=request_timeout,
            retry_limit=retry_limit,
            user_agent=user_agent,
            retry_base_delay=retry_base_delay,
            retry_cap_delay=retry_cap_delay,
            hash_lifetime=hash_lifetime,
            hash_sweep_interval=hash_sweep_interval,
        )
        self._token = normalize_token(token)
        self._on_request = on_request
        self.buckets: dict[str, SequentialBucket] = {}
        self.hashes = BucketHashTable()
        self.global_state = GlobalRateState()
        self._last_sweep = time.monotonic()

    @property
    def config(self) -> RestConfig:
        """現在の設定。"""

        return self._config

    @property
    def limited(self) -> bool:
        """グローバル制限中か。

        参考情報であり、制限中に ``request`` を呼んでもバケット側で待機する。
        """

        return self.global_state.is_limited()

    async def request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = False,
        body: Any = None,
        headers: dict[str, str] | None = None,
        files: Iterable[FileContent | None] | None = None,
        query: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> Any:
        """APIへ要求を送信し、解析済みの応答本文を返す。

        Args:
            method: HTTPメソッド。
            path: APIパス（例: ``/channels/123/messages``）。
            auth: Authorizationヘッダを付与するか。
            body: JSON本文。
            headers: 追加ヘッダ。
            files: 添付ファイル。
            query: クエリパラメータ。
            reason: 監査ログ理由。

        Returns:
            応答本文。204の場合はNone。

        Raises:
            RestConfigurationError: 認証が必要なのにトークンがない場合。
            RestClientError: 429以外の4xx。
            RestTimeoutError: タイムアウトした場合。
            RestRetryLimitExceeded: 再試行上限に達した場合。
        """

        authorization: str | None = None
        if auth:
            if self._token is None:
                raise RestConfigurationError(f"トークンが設定されていません: {method.upper()} {path}")
            authorization = self._token

        options = RequestOptions(
            auth=auth,
            body=body,
            headers=dict(headers or {}),
            files=tuple(files or ()),
            query=dict(query or {}),
            reason=reason,
        )
        req = Request.build(self._config, method, path, options, authorization=authorization)
        self._maybe_sweep_hashes()
        bucket = self._get_bucket(self.hashes.resolve(req.id), req.major_parameter)
        return await bucket.add(req)

    def _get_bucket(self, hash: str, major_parameter: str) -> SequentialBucket:
        key = f"{hash}:{major_parameter}"
        bucket = self.buckets.get(key)
        if bucket is not None:
            return bucket
        bucket = SequentialBucket(
            hash=hash,
            major_parameter=major_parameter,
            client=self._http_client,
            config=self._config,
            hashes=self.hashes,
            global_state=self.global_state,
            on_request=self._on_request,
        )
        self.buckets[key] = bucket
        logger.debug("バケット %s を作成しました", key)
        return bucket

    def _maybe_sweep_hashes(self) -> None:
        lifetime = self._config.hash_lifetime
        if lifetime is None:
            return
        now = time.monotonic()
        if now - self._last_sweep < self._config.hash_sweep_interval:
            return
        self._last_sweep = now
        self.hashes.sweep(lifetime)

    async def aclose(self) -> None:
        """全バケットを停止し、内部Clientをクローズする。"""

        for bucket in list(self.buckets.values()):
            await bucket.close()
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "AsyncRestClient":
        """非同期コンテキスト開始。"""

        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """非同期コンテキスト終了。"""

        await self.aclose()
