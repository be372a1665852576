"""Immutable environment snapshot captured for a single update job."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType


class EnvironmentSnapshot(Mapping[str, str]):
    """Read-only name -> value mapping.

    The snapshot copies its input on construction, so later changes to
    the source mapping (including ``os.environ``) are not observed.
    """

    __slots__ = ("_data",)

    def __init__(self, variables: Mapping[str, str] | None = None) -> None:
        data: dict[str, str] = {}
        for name, value in (variables or {}).items():
            if not isinstance(name, str) or not isinstance(value, str):
                raise TypeError(
                    f"Environment entries must be str -> str, got "
                    f"{type(name).__name__} -> {type(value).__name__}"
                )
            data[name] = value
        self._data = MappingProxyType(data)

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    @classmethod
    def from_os_environ(cls, names: Iterable[str] | None = None) -> EnvironmentSnapshot:
        """Capture the current process environment.

        When *names* is given, only those variables are captured; names
        that are not set are left out.
        """
        environ = dict(os.environ)
        if names is None:
            return cls(environ)
        return cls({name: environ[name] for name in names if name in environ})

    @classmethod
    def from_assignments(cls, assignments: Iterable[str]) -> EnvironmentSnapshot:
        """Build a snapshot from ``NAME=VALUE`` strings.

        The value is everything after the first ``=`` and may be empty.
        Later assignments to the same name win.

        Raises
        ------
        ValueError
            If an assignment contains no ``=``.
        """
        data: dict[str, str] = {}
        for assignment in assignments:
            name, sep, value = assignment.partition("=")
            if not sep:
                raise ValueError(
                    f"Expected NAME=VALUE, got {assignment!r}"
                )
            data[name] = value
        return cls(data)

    # ------------------------------------------------------------------
    # Mapping protocol
    # ------------------------------------------------------------------

    def __getitem__(self, name: str) -> str:
        return self._data[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"EnvironmentSnapshot({len(self._data)} variables)"
