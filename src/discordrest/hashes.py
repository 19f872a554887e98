"""ルートIDとサーバー側バケットハッシュの対応表。"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from discordrest.types import HashData

logger = logging.getLogger(__name__)


class BucketHashTable:
    """ルートID（``METHOD:route``）からバケットハッシュへの対応表。

    参照のたびに最終参照時刻を更新し、``sweep`` で長期間使われていない
    項目を破棄する。
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, HashData] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, route_id: object) -> bool:
        return route_id in self._entries

    def get(self, route_id: str) -> str | None:
        """ハッシュを返す。見つかった場合は最終参照時刻を更新する。"""

        entry = self._entries.get(route_id)
        if entry is None:
            return None
        entry.last_access = self._clock()
        return entry.value

    def resolve(self, route_id: str) -> str:
        """ハッシュを返す。未登録ならルートID自身を返す。"""

        value = self.get(route_id)
        return route_id if value is None else value

    def set(self, route_id: str, value: str) -> bool:
        """ハッシュを登録する。

        Returns:
            既存の値から変化したか。
        """

        entry = self._entries.get(route_id)
        now = self._clock()
        if entry is None:
            self._entries[route_id] = HashData(value=value, last_access=now)
            return True
        entry.last_access = now
        if entry.value == value:
            return False
        entry.value = value
        return True

    def sweep(self, lifetime: float) -> list[str]:
        """``lifetime`` 秒より長く参照されていない項目を破棄する。

        Args:
            lifetime: 保持秒。

        Returns:
            破棄したルートID。
        """

        threshold = self._clock() - lifetime
        stale = [key for key, entry in self._entries.items() if entry.last_access < threshold]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("未使用のバケットハッシュを%d件破棄しました", len(stale))
        return stale
