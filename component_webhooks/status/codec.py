"""Encode and decode the package status payload carried in a secret field.

The payload field is not reliably binary-safe across call sites: some deliver
it base64-encoded, others hand over text that was already decoded. Decoding
therefore tries base64 first and falls back to raw text, and the mode that
worked is returned alongside the text so the write-back can mirror it.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
import json
from typing import Any, Dict, Optional, Union

from component_webhooks.core.logger import get_logger


logger = get_logger("component_webhooks.status.codec")

RawPayload = Union[str, bytes]


class EncodingMode(str, Enum):
    BASE64 = "base64"
    RAW = "raw"

    @property
    def other(self) -> "EncodingMode":
        return EncodingMode.RAW if self is EncodingMode.BASE64 else EncodingMode.BASE64


class PayloadDecodeError(ValueError):
    """Raised when a package payload cannot be turned into a status object."""


@dataclass(frozen=True)
class DecodedPayload:
    text: str
    mode: EncodingMode


def _as_bytes(raw: RawPayload) -> bytes:
    if isinstance(raw, bytes):
        return raw
    return raw.encode("utf-8")


def _decode_with(raw: RawPayload, mode: EncodingMode) -> str:
    if mode is EncodingMode.BASE64:
        try:
            decoded = base64.b64decode(_as_bytes(raw), validate=True)
            return decoded.decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise PayloadDecodeError(f"payload_not_base64: {exc}") from exc
    try:
        return raw.decode("utf-8") if isinstance(raw, bytes) else raw
    except UnicodeDecodeError as exc:
        raise PayloadDecodeError(f"payload_not_utf8: {exc}") from exc


def decode_payload(raw: RawPayload, *, mode: Optional[EncodingMode] = None) -> DecodedPayload:
    """Decode ``raw`` into text and report the encoding mode that was used.

    Without ``mode`` the value is probed as base64 first and taken verbatim
    when that fails. With ``mode`` that mode is tried first; if it does not
    fit the value the other one is tried, but the caller keeps writing back
    with its own mode.
    """

    if raw is None:
        raise PayloadDecodeError("payload_missing")

    first = mode or EncodingMode.BASE64
    try:
        return DecodedPayload(text=_decode_with(raw, first), mode=first)
    except PayloadDecodeError:
        text = _decode_with(raw, first.other)

    if mode is not None:
        logger.warning("payload_encoding_mismatch", expected=mode.value, detected=first.other.value)
    return DecodedPayload(text=text, mode=first.other)


def encode_payload(text: str, mode: EncodingMode) -> str:
    if mode is EncodingMode.BASE64:
        return base64.b64encode(text.encode("utf-8")).decode("ascii")
    return text


def parse_json_object(text: str) -> Dict[str, Any]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PayloadDecodeError(f"payload_invalid_json: {exc}") from exc
    if not isinstance(parsed, dict):
        raise PayloadDecodeError("payload_not_an_object")
    return parsed


def dump_json_object(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
