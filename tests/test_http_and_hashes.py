"""ヘッダ解析とバケットハッシュ対応表のテスト。"""

from __future__ import annotations

import httpx

from discordrest.hashes import BucketHashTable
from discordrest.http import full_jitter_backoff, parse_rate_limit_headers, parse_retry_after


def test_parse_rate_limit_headers_reads_all_fields() -> None:
    headers = httpx.Headers(
        {
            "x-ratelimit-limit": "5",
            "x-ratelimit-remaining": "4",
            "x-ratelimit-reset-after": "1.25",
            "x-ratelimit-bucket": "abcd1234",
            "x-ratelimit-global": "true",
            "x-ratelimit-scope": "user",
            "retry-after": "3",
        }
    )

    parsed = parse_rate_limit_headers(headers)

    assert parsed.limit == 5
    assert parsed.remaining == 4
    assert parsed.reset_after == 1.25
    assert parsed.bucket == "abcd1234"
    assert parsed.is_global is True
    assert parsed.scope == "user"
    assert parsed.retry_after == 3.0


def test_parse_rate_limit_headers_tolerates_missing_and_broken_values() -> None:
    parsed = parse_rate_limit_headers(httpx.Headers({"x-ratelimit-limit": "five"}))

    assert parsed.limit is None
    assert parsed.remaining is None
    assert parsed.reset_after is None
    assert parsed.bucket is None
    assert parsed.is_global is False
    assert parsed.retry_after is None


def test_parse_retry_after_variants() -> None:
    assert parse_retry_after(None) is None
    assert parse_retry_after("") is None
    assert parse_retry_after("0.5") == 0.5
    assert parse_retry_after("-2") == 0.0
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0
    assert parse_retry_after("soon") is None


def test_full_jitter_backoff_disabled_with_zero_base() -> None:
    assert full_jitter_backoff(attempt=3, base=0.0, cap=8.0) == 0.0
    assert 0.0 <= full_jitter_backoff(attempt=3, base=0.5, cap=1.0) <= 1.0


def test_hash_table_resolves_to_route_id_until_set() -> None:
    table = BucketHashTable()

    assert table.resolve("GET:/users/@me") == "GET:/users/@me"
    assert table.set("GET:/users/@me", "abc") is True
    assert table.set("GET:/users/@me", "abc") is False
    assert table.resolve("GET:/users/@me") == "abc"
    assert table.set("GET:/users/@me", "def") is True
    assert table.get("GET:/users/@me") == "def"
    assert len(table) == 1


def test_hash_table_sweep_drops_only_idle_entries() -> None:
    now = {"t": 100.0}
    table = BucketHashTable(clock=lambda: now["t"])
    table.set("GET:/a", "1")
    table.set("GET:/b", "2")

    now["t"] = 150.0
    table.get("GET:/b")
    now["t"] = 200.0
    removed = table.sweep(60.0)

    assert removed == ["GET:/a"]
    assert "GET:/a" not in table
    assert table.get("GET:/b") == "2"
