"""Snowflake ID の補助関数。"""

from __future__ import annotations

DISCORD_EPOCH_MS = 1_420_070_400_000


def get_discord_epoch(snowflake: str | int) -> int:
    """IDに埋め込まれたエポックからの経過ミリ秒を返す。"""

    return int(snowflake) >> 22


def get_created_at(snowflake: str | int) -> int:
    """IDの作成時刻をUNIXミリ秒で返す。

    Args:
        snowflake: ID文字列または整数。

    Returns:
        作成時刻（UNIXエポックからのミリ秒）。
    """

    return get_discord_epoch(snowflake) + DISCORD_EPOCH_MS


def from_timestamp(timestamp_ms: int) -> str:
    """UNIXミリ秒に対応する最小のIDを返す。"""

    return str(max(0, timestamp_ms - DISCORD_EPOCH_MS) << 22)
