"""Flat key/value text encoding for application messages.

A message travels as ``type|key=value|group.sub=value``. The format has no
escaping: keys may not contain ``|``, ``=`` or ``.`` and no value may
contain ``|``. Values are restored with a fixed coercion order (``true``,
``false``, numbers, then plain strings), so a string field that looks like
a boolean or a number comes back as one.
"""
from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .errors import WireFormatError

Scalar = Union[bool, int, float, str]
FieldValue = Union[Scalar, Dict[str, Scalar]]
Fields = Dict[str, FieldValue]

TOKEN_SEPARATOR = "|"
KEY_VALUE_SEPARATOR = "="
GROUP_SEPARATOR = "."

_DECIMAL_RE = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$", re.ASCII)
_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$", re.ASCII)
_HEX_RE = re.compile(r"^\s*([+-]?)0[xX]([0-9a-fA-F]+)\s*$", re.ASCII)


@dataclass
class DecodedMessage:
    """A message type plus its decoded field mapping."""

    type: str
    fields: Fields = field(default_factory=dict)

    def __iter__(self):
        # Allows ``msg_type, fields = decode(raw)``.
        yield self.type
        yield self.fields


def format_value(value: Scalar) -> str:
    """Stringify a scalar the way the wire expects it."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return value
    raise WireFormatError(f"Unsupported field value type {type(value).__name__}")


def coerce_value(text: str) -> Scalar:
    """Coerce a raw wire value: booleans first, then numbers, else the string."""

    if text == "true":
        return True
    if text == "false":
        return False
    if _INTEGER_RE.match(text):
        return int(text)
    hex_match = _HEX_RE.match(text)
    if hex_match:
        number = int(hex_match.group(2), 16)
        return -number if hex_match.group(1) == "-" else number
    if _DECIMAL_RE.match(text):
        number = float(text)
        if math.isfinite(number):
            return number
    return text


def _check_key(key: str) -> None:
    for forbidden in (TOKEN_SEPARATOR, KEY_VALUE_SEPARATOR, GROUP_SEPARATOR):
        if forbidden in key:
            raise WireFormatError(f"Field key {key!r} contains reserved character {forbidden!r}")


def _token(key: str, value: Scalar) -> str:
    text = format_value(value)
    if TOKEN_SEPARATOR in text:
        raise WireFormatError(f"Value for {key!r} contains reserved character '|'")
    return f"{key}{KEY_VALUE_SEPARATOR}{text}"


def encode(message_type: str, fields: Optional[Mapping[str, FieldValue]] = None) -> str:
    """Encode a message type and its fields into a single wire string."""

    if not message_type or TOKEN_SEPARATOR in message_type:
        raise WireFormatError(f"Invalid message type {message_type!r}")
    parts: List[str] = [message_type]
    for key, value in (fields or {}).items():
        key = str(key)
        _check_key(key)
        if isinstance(value, Mapping):
            for sub_key, sub_value in value.items():
                sub_key = str(sub_key)
                _check_key(sub_key)
                if isinstance(sub_value, Mapping):
                    raise WireFormatError(f"Field {key}.{sub_key} nests deeper than one level")
                parts.append(_token(f"{key}{GROUP_SEPARATOR}{sub_key}", sub_value))
        else:
            parts.append(_token(key, value))
    return TOKEN_SEPARATOR.join(parts)


def decode(raw: Union[str, bytes]) -> Optional[DecodedMessage]:
    """Decode a wire string; returns ``None`` when there is no message type."""

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    tokens = [token for token in raw.split(TOKEN_SEPARATOR) if token]
    if not tokens:
        return None
    message = DecodedMessage(tokens[0])
    data = message.fields
    for token in tokens[1:]:
        key, sep, text = token.partition(KEY_VALUE_SEPARATOR)
        if not sep or not text:
            continue
        value = coerce_value(text)
        parent, dot, child = key.partition(GROUP_SEPARATOR)
        if dot and child:
            group = data.get(parent)
            if not isinstance(group, dict):
                group = {}
                data[parent] = group
            group[child] = value
        else:
            data[key] = value
    return message


__all__ = [
    "DecodedMessage",
    "FieldValue",
    "Fields",
    "Scalar",
    "coerce_value",
    "decode",
    "encode",
    "format_value",
]
