from __future__ import annotations

import base64
import json

import pytest

from component_webhooks.status.codec import (
    EncodingMode,
    PayloadDecodeError,
    decode_payload,
    encode_payload,
    parse_json_object,
)


PAYLOAD_TEXT = json.dumps({"name": "test-pkg", "generation": 3, "deployedComponents": []})


def test_decode_prefers_base64_when_value_is_encoded() -> None:
    raw = base64.b64encode(PAYLOAD_TEXT.encode("utf-8")).decode("ascii")

    decoded = decode_payload(raw)

    assert decoded.mode is EncodingMode.BASE64
    assert decoded.text == PAYLOAD_TEXT


def test_decode_falls_back_to_raw_text_when_not_base64() -> None:
    decoded = decode_payload(PAYLOAD_TEXT)

    assert decoded.mode is EncodingMode.RAW
    assert decoded.text == PAYLOAD_TEXT


def test_decode_accepts_bytes() -> None:
    decoded = decode_payload(base64.b64encode(PAYLOAD_TEXT.encode("utf-8")))

    assert decoded.mode is EncodingMode.BASE64
    assert decoded.text == PAYLOAD_TEXT


def test_encode_mirrors_the_decoded_mode_for_non_ascii_text() -> None:
    text = json.dumps({"name": "paquete-ñandú", "generation": 1}, ensure_ascii=False)

    for mode in (EncodingMode.BASE64, EncodingMode.RAW):
        decoded = decode_payload(encode_payload(text, mode))
        assert decoded.mode is mode
        assert decoded.text == text


def test_base64_that_is_not_utf8_is_treated_as_raw_text() -> None:
    raw = base64.b64encode(b"\xff\xfe\xfd").decode("ascii")

    decoded = decode_payload(raw)

    assert decoded.mode is EncodingMode.RAW
    assert decoded.text == raw


def test_decode_with_expected_mode_falls_back_when_value_does_not_fit() -> None:
    decoded = decode_payload(PAYLOAD_TEXT, mode=EncodingMode.BASE64)

    assert decoded.mode is EncodingMode.RAW
    assert decoded.text == PAYLOAD_TEXT


def test_missing_payload_raises() -> None:
    with pytest.raises(PayloadDecodeError, match="payload_missing"):
        decode_payload(None)  # type: ignore[arg-type]


@pytest.mark.parametrize("text", ["{not json", "[1, 2, 3]", ""])
def test_parse_json_object_rejects_invalid_payloads(text: str) -> None:
    with pytest.raises(PayloadDecodeError):
        parse_json_object(text)
