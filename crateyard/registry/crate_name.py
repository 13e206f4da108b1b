"""Crate names and the directory sharding rule derived from them.

Clients locate index files and archives by path, so the sharding must be
bit-exact:

    a      -> 1/a
    ab     -> 2/ab
    abc    -> 3/a/abc
    abcd   -> ab/cd/abcd
"""

from __future__ import annotations

from pathlib import Path

from crateyard.errors import InvalidNameError

_EXTRA_NAME_CHARS = frozenset("-_")


class CrateName(str):
    """A validated crate name.

    Contains only ASCII alphanumerics, ``-`` or ``_`` and starts with an
    alphabetic character. Being a ``str`` it can be used directly as a
    mapping key and as a path segment.
    """

    __slots__ = ()

    def __new__(cls, value: str) -> "CrateName":
        if isinstance(value, CrateName):
            return value
        if not isinstance(value, str):
            raise InvalidNameError(repr(value), "must be a string")
        if not value:
            raise InvalidNameError(value, "the crate name cannot be empty")
        if not value.isascii():
            raise InvalidNameError(value, "the crate name must be ASCII")
        if not value[0].isalpha():
            raise InvalidNameError(value, "the crate name must start with an alphabetic character")
        for chr_ in value:
            if not (chr_.isalnum() or chr_ in _EXTRA_NAME_CHARS):
                raise InvalidNameError(
                    value,
                    "the crate name must only contain alphanumeric characters, "
                    f"hyphen (-) or underscore (_), not {chr_!r}",
                )
        return super().__new__(cls, value)

    def shard_segments(self) -> tuple[str, ...]:
        """Return the prefix directories this name is sharded under."""
        if len(self) == 1:
            return ("1",)
        if len(self) == 2:
            return ("2",)
        if len(self) == 3:
            return ("3", self[0])
        return (self[0:2], self[2:4])

    def shard_prefix(self) -> str:
        """The shard directories joined with ``/``, as used in download URLs."""
        return "/".join(self.shard_segments())

    def relative_path(self) -> Path:
        """Path of this crate under a sharded tree, e.g. ``ab/cd/abcd``."""
        return Path(*self.shard_segments(), str(self))

    def __repr__(self) -> str:
        return f"CrateName({str(self)!r})"
