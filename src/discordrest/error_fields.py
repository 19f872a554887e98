"""エラー応答本文のフィールドエラー平坦化。"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

UNKNOWN_ERROR_MESSAGE = "Unknown error"


def _join(path: list[str]) -> str:
    return ".".join(path)


def _leaf(path: list[str], message: Any) -> str:
    text = message.get("message", message) if isinstance(message, Mapping) else message
    if not path:
        return str(text)
    return f"{_join(path)}: {text}"


def _walk(node: Any, path: list[str], out: list[str]) -> None:
    if isinstance(node, Mapping):
        for key, value in node.items():
            if key == "_errors" and isinstance(value, list):
                out.extend(_leaf(path, item) for item in value)
                continue
            _walk(value, [*path, str(key)], out)
        return
    if isinstance(node, list):
        for index, item in enumerate(node):
            if isinstance(item, (Mapping, list)):
                _walk(item, [*path, str(index)], out)
            else:
                out.append(_leaf(path, item))


def flatten_errors(errors: Any) -> list[str]:
    """入れ子のフィールドエラーを ``field.path: message`` の一覧へ平坦化する。

    ``_errors`` 配列はその親のパスで、オブジェクト配列は添字をパスに含めて
    展開する。文字列・数値のフィールド（``message`` や ``code``）は対象外。

    Args:
        errors: エラーツリー。

    Returns:
        葉ごとのメッセージ一覧。
    """

    out: list[str] = []
    _walk(errors, [], out)
    return out


def build_error_message(body: Any) -> str:
    """エラー応答本文から1つの可読メッセージを組み立てる。

    Args:
        body: JSON解析済みの応答本文。

    Returns:
        トップレベルの要約と平坦化したフィールドエラー。
    """

    if not isinstance(body, Mapping):
        return UNKNOWN_ERROR_MESSAGE if body in (None, "") else str(body)

    message = str(body.get("message") or UNKNOWN_ERROR_MESSAGE)
    if "errors" in body:
        lines = flatten_errors(body["errors"])
    else:
        lines = flatten_errors(body)
    if lines:
        message += "\n  " + "\n  ".join(lines)
    return message
