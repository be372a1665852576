"""Name and value acceptance rules for propagated environment variables.

Two receivers disagree on what they accept, so there are two predicates:

* :func:`is_valid_identifier` gates a variable for every receiver.  Only
  ASCII letters, digits and ``_`` are allowed, with a non-digit first
  character.  POSIX merely asks that characters such as ``%`` be tolerated,
  but in practice they break consumers, and systemd rejects them.
* :func:`is_strictly_transmissible_value` gates a value for the systemd
  user manager, which refuses control characters other than tab and
  newline (mirrors systemd's ``string_has_cc``).
"""

from __future__ import annotations

import re
from typing import Final

__all__ = ["is_valid_identifier", "is_strictly_transmissible_value"]

_IDENTIFIER_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"[A-Za-z_][A-Za-z0-9_]*"
)

_ALLOWED_CONTROL: Final[frozenset[str]] = frozenset("\t\n")
_DEL: Final[int] = 127


def is_valid_identifier(name: str) -> bool:
    """Return ``True`` if *name* may be sent as an environment variable name.

    The first character must be an ASCII letter or underscore, the rest
    ASCII letters, digits or underscores.  The empty string is rejected.
    Classification never depends on locale or Unicode categories.
    """
    if not isinstance(name, str):
        return False
    return _IDENTIFIER_PATTERN.fullmatch(name) is not None


def is_strictly_transmissible_value(value: str) -> bool:
    """Return ``True`` if *value* has no control characters besides ``\\t``/``\\n``.

    Code points 1-31 (other than tab and newline) and DEL are rejected.
    NUL is not checked here; the transport refuses it separately.
    """
    if not isinstance(value, str):
        return False
    for char in value:
        if char in _ALLOWED_CONTROL:
            continue
        code = ord(char)
        if 0 < code < 32 or code == _DEL:
            return False
    return True
