"""フィールドエラー平坦化のテスト。"""

from __future__ import annotations

from discordrest.error_fields import UNKNOWN_ERROR_MESSAGE, build_error_message, flatten_errors


def test_invalid_form_body_message_contains_summary_and_field() -> None:
    body = {
        "message": "Invalid Form Body",
        "code": 50035,
        "errors": {"name": {"_errors": [{"code": "BASE_TYPE_MAX_LENGTH", "message": "too long"}]}},
    }

    message = build_error_message(body)

    assert "Invalid Form Body" in message
    assert "name: too long" in message
    assert message == "Invalid Form Body\n  name: too long"


def test_nested_objects_are_dot_joined() -> None:
    errors = {
        "embeds": {
            "0": {
                "fields": {
                    "1": {
                        "value": {"_errors": [{"message": "required"}]},
                    }
                },
                "title": {"_errors": [{"message": "too long"}, {"message": "bad chars"}]},
            }
        }
    }

    assert flatten_errors(errors) == [
        "embeds.0.fields.1.value: required",
        "embeds.0.title: too long",
        "embeds.0.title: bad chars",
    ]


def test_array_of_objects_and_strings_keep_every_leaf() -> None:
    errors = {
        "roles": [
            {"_errors": [{"message": "unknown role"}]},
            {"id": {"_errors": [{"message": "invalid snowflake"}]}},
        ],
        "tags": ["must be unique", "too many"],
    }

    assert flatten_errors(errors) == [
        "roles.0: unknown role",
        "roles.1.id: invalid snowflake",
        "tags: must be unique",
        "tags: too many",
    ]


def test_sibling_of_errors_list_is_not_lost() -> None:
    errors = {
        "image": {
            "_errors": [{"message": "invalid image"}],
            "size": {"_errors": [{"message": "too large"}]},
        }
    }

    assert flatten_errors(errors) == ["image: invalid image", "image.size: too large"]


def test_top_level_errors_list_has_no_prefix() -> None:
    assert flatten_errors({"_errors": [{"message": "payload invalid"}]}) == ["payload invalid"]


def test_body_without_errors_key_is_flattened_directly() -> None:
    body = {"message": "Missing Access", "code": 50001}

    assert build_error_message(body) == "Missing Access"


def test_non_mapping_bodies() -> None:
    assert build_error_message(None) == UNKNOWN_ERROR_MESSAGE
    assert build_error_message("") == UNKNOWN_ERROR_MESSAGE
    assert build_error_message("<html>bad gateway</html>") == "<html>bad gateway</html>"
    assert build_error_message({"errors": {"a": {"_errors": [{"message": "x"}]}}}) == (
        f"{UNKNOWN_ERROR_MESSAGE}\n  a: x"
    )
