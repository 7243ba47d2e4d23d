"""Canonical JSON encoder for claims and process digests.

Canonical form rules (RFC 8785 / ECMAScript ``JSON.stringify`` compatible for the
value shapes claims use):
  * UTF-8 output, non-ASCII characters emitted as-is.
  * Object member names sorted by codepoint.
  * No insignificant whitespace.
  * Strings escape quotation mark, reverse solidus and control characters; the short
    forms ``\\b \\f \\n \\r \\t`` are used where they exist, ``\\u00xx`` otherwise.
  * Numbers: integral floats lose their fractional part, shortest round-trip digits,
    exponent form only outside ``[1e-6, 1e21)``.

Anything that cannot be represented (NaN/Infinity, non-string keys, unknown types, or
JSON text that does not parse) raises ``InvalidInput``. Raw input is never passed
through, since that would make two semantically equal claims hash differently.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Any
import json
import math

from ..errors import InvalidInput

_SHORT_ESCAPES = {
    '"': '\\"',
    '\\': '\\\\',
    '\b': '\\b',
    '\f': '\\f',
    '\n': '\\n',
    '\r': '\\r',
    '\t': '\\t',
}


def _escape_string(s: str) -> str:
    out_chars = []
    for ch in s:
        if ch in _SHORT_ESCAPES:
            out_chars.append(_SHORT_ESCAPES[ch])
        elif ord(ch) <= 0x1F:
            out_chars.append(f"\\u{ord(ch):04x}")
        else:
            out_chars.append(ch)
    return '"' + ''.join(out_chars) + '"'


def _canonical_number(n: Any) -> str:
    if isinstance(n, int):
        return str(n)
    if math.isnan(n) or math.isinf(n):
        raise InvalidInput("NaN/Infinity are not representable in canonical JSON")
    if n == 0:
        return "0"  # also normalizes -0.0
    abs_n = abs(n)
    if 1e-6 <= abs_n < 1e21:
        if n == int(n):
            return str(int(n))
        s = repr(n)
        if 'e' in s:
            # repr switches to exponent form below 1e-4; expand it
            s = format(Decimal(s), 'f')
        return s
    mantissa, exp = repr(n).split('e')
    if mantissa.endswith('.0'):
        mantissa = mantissa[:-2]
    exp_val = int(exp)
    return f"{mantissa}e{'+' if exp_val > 0 else '-'}{abs(exp_val)}"


def _serialize(obj: Any) -> str:
    if obj is None:
        return 'null'
    if obj is True:
        return 'true'
    if obj is False:
        return 'false'
    if isinstance(obj, (int, float)):
        return _canonical_number(obj)
    if isinstance(obj, str):
        return _escape_string(obj)
    if isinstance(obj, (list, tuple)):
        return '[' + ','.join(_serialize(v) for v in obj) + ']'
    if isinstance(obj, dict):
        items = []
        for k, v in obj.items():
            if not isinstance(k, str):
                raise InvalidInput(f"Object keys must be strings, got {type(k).__name__}")
            items.append((k, _serialize(v)))
        items.sort(key=lambda kv: kv[0])
        return '{' + ','.join(_escape_string(k) + ':' + v for k, v in items) + '}'
    raise InvalidInput(f"Unsupported type for canonical JSON: {type(obj)!r}")


def _reject_constant(name: str) -> Any:
    raise InvalidInput(f"Non-finite number {name} is not valid JSON")


def canonicalize_json(obj: Any) -> bytes:
    """Return canonical UTF-8 bytes for a JSON value.

    ``obj`` may be an already-decoded value or JSON text (``str``/``bytes``); text is
    parsed first and a parse failure raises ``InvalidInput``.
    """
    if isinstance(obj, (bytes, bytearray)):
        try:
            obj = obj.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidInput(f"JSON text is not valid UTF-8: {e}") from e
        return canonicalize_json(obj)
    if isinstance(obj, str):
        try:
            obj = json.loads(obj, parse_constant=_reject_constant)
        except json.JSONDecodeError as e:
            raise InvalidInput(f"Malformed JSON: {e}") from e
    return _serialize(obj).encode('utf-8')


__all__ = ["canonicalize_json"]
