"""ルートテンプレートとメジャーパラメータの導出。"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass

from discordrest.snowflake import get_created_at

GLOBAL_MAJOR_PARAMETER = "global"

OLD_MESSAGE_THRESHOLD_MS = 14 * 24 * 60 * 60 * 1000
NEW_MESSAGE_THRESHOLD_MS = 10 * 1000

_MAJOR_PARAMETER_RE = re.compile(r"^/(?:channels|guilds|webhooks)/(\d{16,19})")
_REACTIONS_RE = re.compile(r"/reactions/.*")
_SNOWFLAKE_RE = re.compile(r"\d{16,19}")
_TOKEN_RE = re.compile(r"[a-zA-Z0-9]{150,300}")

_MESSAGE_DELETE_ROUTE = "/channels/:id/messages/:id"


@dataclass(frozen=True, slots=True)
class RouteInfo:
    """分類結果。

    Attributes:
        route: ルートテンプレート（年齢マーカー込み）。
        major_parameter: バケットを分割するリソースID。該当なしは "global"。
    """

    route: str
    major_parameter: str


def get_major_parameter(path: str) -> str:
    """パス先頭のチャンネル/ギルド/Webhook IDを返す。"""

    match = _MAJOR_PARAMETER_RE.match(path)
    if match is None:
        return GLOBAL_MAJOR_PARAMETER
    return match.group(1)


def template_path(path: str) -> str:
    """可変セグメントをプレースホルダへ置き換える。"""

    route = _REACTIONS_RE.sub("/reactions/:id", path)
    route = _SNOWFLAKE_RE.sub(":id", route)
    return _TOKEN_RE.sub(":token", route)


def message_age_marker(message_id: str, *, now_ms: int | None = None) -> str:
    """メッセージ削除のレート制限区分を表す接尾辞を返す。

    14日以上前のメッセージは ``;old``、10秒以内は ``;new``、それ以外は空文字。

    Args:
        message_id: メッセージID。
        now_ms: 現在時刻（UNIXミリ秒）。省略時は現在時刻。

    Returns:
        ルートへ付与する接尾辞。
    """

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    try:
        created_at = get_created_at(message_id)
    except ValueError:
        return ""
    age = now_ms - created_at
    if age >= OLD_MESSAGE_THRESHOLD_MS:
        return ";old"
    if age <= NEW_MESSAGE_THRESHOLD_MS:
        return ";new"
    return ""


def classify(method: str, path: str, *, now_ms: int | None = None) -> RouteInfo:
    """メソッドとパスからルート情報を導出する。

    Args:
        method: HTTPメソッド。
        path: APIパス（クエリを含まない）。
        now_ms: 現在時刻（UNIXミリ秒）。テスト用。

    Returns:
        ルート情報。
    """

    route = template_path(path)
    if method.upper() == "DELETE" and route == _MESSAGE_DELETE_ROUTE:
        message_id = path[path.rfind("/") + 1 :]
        route += message_age_marker(message_id, now_ms=now_ms)
    return RouteInfo(route=route, major_parameter=get_major_parameter(path))
