from __future__ import annotations

import pytest

from promptgate.correlation.tokens import ActionToken, decode_token, encode_token


def test_encode_with_and_without_value():
    assert encode_token("1a2b3c4d", "cancel") == "1a2b3c4d:cancel"
    assert encode_token("1a2b3c4d", "select", "opt") == "1a2b3c4d:select:opt"
    assert ActionToken("1a2b3c4d", "multi", "x").encode() == "1a2b3c4d:multi:x"


def test_values_may_contain_separator():
    token = decode_token("1a2b3c4d:select:a:b")

    assert token == ActionToken("1a2b3c4d", "select", "a:b")


@pytest.mark.parametrize("raw", ["", None, "1a2b3c4d", ":select:a", "1a2b3c4d:launch", "1a2b3c4d:"])
def test_malformed_tokens_decode_to_none(raw):
    assert decode_token(raw) is None


@pytest.mark.parametrize(
    "correlation_id,action",
    [("", "select"), ("a:b", "select"), ("1a2b3c4d", "explode")],
)
def test_encode_rejects_bad_parts(correlation_id, action):
    with pytest.raises(ValueError):
        encode_token(correlation_id, action)
