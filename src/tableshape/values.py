"""Generated values, value templates and timestamp normalization."""

from __future__ import annotations

import re
import secrets
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping

_TEMPLATE_VAR = re.compile(r"\$\{([^}]+)\}")
_UID = re.compile(r"^uid(?:\((\d+)\))?$")

DEFAULT_UID_LENGTH = 10


def is_known_generator(expr: Any) -> bool:
    """Return True if ``expr`` names a supported ``generate`` expression."""
    if expr is True:
        return True
    if not isinstance(expr, str):
        return False
    return expr == "uuid" or _UID.match(expr) is not None


def generate_value(expr: Any) -> str:
    """
    Produce a value for a ``generate`` expression.

    ``True`` and ``"uuid"`` give a UUID4 string; ``"uid"`` or ``"uid(N)"``
    give a random URL-safe id of N characters (default 10).
    """
    if expr is True or expr == "uuid":
        return str(uuid.uuid4())
    match = _UID.match(expr) if isinstance(expr, str) else None
    if match is None:
        raise ValueError(f"Unknown generate expression: {expr!r}")
    size = int(match.group(1) or DEFAULT_UID_LENGTH)
    return secrets.token_urlsafe(size)[:size]


def template_fields(template: str) -> list[str]:
    """Return the field names referenced by a value template, in order."""
    return _TEMPLATE_VAR.findall(template)


def expand_template(template: str, values: Mapping[str, Any]) -> str | None:
    """
    Substitute ``${name}`` references from ``values``.

    Returns None when any referenced value is missing or None, so the
    caller can leave the field unset.
    """
    missing = False

    def substitute(match: re.Match) -> str:
        nonlocal missing
        value = values.get(match.group(1))
        if value is None:
            missing = True
            return ""
        if hasattr(value, "isoformat"):
            return value.isoformat()
        return str(value)

    result = _TEMPLATE_VAR.sub(substitute, template)
    if missing:
        return None
    return result


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
