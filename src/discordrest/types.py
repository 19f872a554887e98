"""公開型と内部共通データ構造。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from discordrest.request import Request


@dataclass(frozen=True, slots=True)
class FileContent:
    """アップロードするファイル。

    Attributes:
        file: ファイル内容。
        name: ファイル名。
        content_type: MIMEタイプ。省略時はhttpxの推定に任せる。
    """

    file: bytes
    name: str
    content_type: str | None = None


@dataclass(frozen=True, slots=True)
class RequestOptions:
    """1リクエストの付随データ。

    Attributes:
        auth: Authorizationヘッダを付与するか。
        body: JSON本文。
        headers: 追加ヘッダ。
        files: 添付ファイル。
        query: クエリパラメータ。Noneの値は送信しない。
        reason: 監査ログ理由。
    """

    auth: bool = False
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    files: tuple[FileContent, ...] = ()
    query: dict[str, Any] = field(default_factory=dict)
    reason: str | None = None


@dataclass(slots=True)
class HashData:
    """ルートIDに対応するサーバー側バケットハッシュ。

    Attributes:
        value: バケットハッシュ。
        last_access: 最終参照時刻（monotonic秒）。
    """

    value: str
    last_access: float


@dataclass(slots=True)
class RawRequest:
    """HTTP交換1回分の記録。``on_request`` コールバックへ渡す。

    Attributes:
        method: HTTPメソッド。
        url: 送信URL。
        route: ルートテンプレート。
        auth: 認証付きか。
        body: JSON本文。
        files: 添付ファイル。
        latency: 応答までの秒数。
        status: HTTPステータス。
        response: httpx応答。
        request: 送信したリクエスト。
    """

    method: str
    url: str
    route: str
    auth: bool
    body: Any
    files: tuple[FileContent, ...]
    latency: float
    status: int
    response: httpx.Response
    request: Request
