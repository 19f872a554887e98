"""設定値定義。"""

from __future__ import annotations

from dataclasses import dataclass

VERSION = "0.1.1"
API_VERSION = 10

DEFAULT_BASE_URL = f"https://discord.com/api/v{API_VERSION}"
DEFAULT_USER_AGENT = f"DiscordBot (https://github.com/Snazzah/emoji-sync, {VERSION})"

DEFAULT_REQUEST_TIMEOUT_MS = 15_000
DEFAULT_RETRY_LIMIT = 3
DEFAULT_HASH_LIFETIME = 24 * 60 * 60.0
DEFAULT_HASH_SWEEP_INTERVAL = 4 * 60 * 60.0


@dataclass(slots=True)
class RestConfig:
    """リクエストハンドラ共通設定。

    Attributes:
        base_url: APIベースURL。
        ratelimiter_offset: リセット時刻から差し引く補正ミリ秒。
        request_timeout: 1リクエストあたりのタイムアウトミリ秒。
        retry_limit: 再試行の上限回数（初回送信は含まない）。
        user_agent: User-Agent。
        retry_base_delay: 5xx/通信例外時バックオフの基準秒。0で待機なし。
        retry_cap_delay: バックオフ待機の上限秒。
        hash_lifetime: バケットハッシュ対応表の保持秒。Noneで無期限。
        hash_sweep_interval: 対応表を掃除する最小間隔秒。
    """

    base_url: str = DEFAULT_BASE_URL
    ratelimiter_offset: float = 0.0
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_MS
    retry_limit: int = DEFAULT_RETRY_LIMIT
    user_agent: str = DEFAULT_USER_AGENT
    retry_base_delay: float = 0.0
    retry_cap_delay: float = 8.0
    hash_lifetime: float | None = DEFAULT_HASH_LIFETIME
    hash_sweep_interval: float = DEFAULT_HASH_SWEEP_INTERVAL

    @property
    def timeout_seconds(self) -> float:
        """タイムアウトを秒で返す。"""

        return self.request_timeout / 1000.0

    @property
    def offset_seconds(self) -> float:
        """リセット補正を秒で返す。"""

        return self.ratelimiter_offset / 1000.0
