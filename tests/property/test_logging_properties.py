"""Property tests for structured logging: JSON shape and secret redaction."""

from __future__ import annotations

import json
import logging

from hypothesis import given, settings, strategies as st

from marketplace_client.logging_config import JsonFormatter


# --- Strategies ---

messages = st.text(min_size=1, max_size=100, alphabet="abcdefghijklmnopqrstuvwxyz0123456789 ._-/")
levels = st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
# Upper-case lead character keeps secrets from occurring inside lower-case messages
secrets = st.text(min_size=8, max_size=40, alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.").map(
    lambda s: f"X{s}"
)
secret_keys = st.sampled_from(["token", "auth_token", "access_token", "password", "secret", "Authorization"])
paths = st.from_regex(r"/supplier/products(/[0-9]{1,4})?", fullmatch=True)


def _make_record(message: str, level: str = "INFO", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="marketplace_client.test",
        level=getattr(logging, level),
        pathname="test.py",
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@settings(max_examples=100)
@given(message=messages, level=levels, path=paths, status=st.integers(min_value=100, max_value=599))
def test_entries_are_json_with_required_fields(message: str, level: str, path: str, status: int) -> None:
    output = JsonFormatter().format(_make_record(message, level, method="GET", url=path, status_code=status))
    entry = json.loads(output)

    assert entry["level"] == level
    assert entry["message"] == message
    assert entry["logger"] == "marketplace_client.test"
    assert entry["url"] == path
    assert entry["status_code"] == status
    assert "timestamp" in entry


@settings(max_examples=200)
@given(prefix=messages, key=secret_keys, secret=secrets, separator=st.sampled_from(["=", ": ", ":"]), bearer=st.booleans())
def test_secret_values_never_appear(prefix: str, key: str, secret: str, separator: str, bearer: bool) -> None:
    value = f"Bearer {secret}" if bearer else secret
    message = f"{prefix} {key}{separator}{value}"

    entry = json.loads(JsonFormatter().format(_make_record(message, url=f"/cb?{key}={secret}")))

    assert secret not in entry["message"]
    assert secret not in entry["url"]
