"""Runtime settings shared by the indexer's processing tasks."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Union

from spectreidx.models import Hash

MIN_BATCH_SCALE = 0.1
MAX_BATCH_SCALE = 10.0

FlagName = Union[str, Enum]


def _normalize(name: FlagName) -> str:
    raw = name.value if isinstance(name, Enum) else name
    return str(raw).strip().lower().replace("-", "_")


def _normalize_all(names: Union[str, Iterable[FlagName]]) -> frozenset[str]:
    if isinstance(names, (str, Enum)):
        names = (names,)
    return frozenset(_normalize(name) for name in names)


@dataclass(frozen=True)
class Settings:
    """Settings derived from the command line and the connected network.

    ``disable``, ``enable`` and ``exclude_fields`` hold feature and field names;
    names are compared case-insensitively, with ``-`` and ``_`` treated alike.
    """

    net_bps: int
    net_tps_max: int
    checkpoint: Hash
    disable_vcp_wait_for_sync: bool = False
    batch_scale: float = 1.0
    cache_ttl: int = 60
    disable: frozenset[str] = frozenset()
    enable: frozenset[str] = frozenset()
    exclude_fields: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if not MIN_BATCH_SCALE <= self.batch_scale <= MAX_BATCH_SCALE:
            raise ValueError("Invalid batch-scale")
        for attr in ("disable", "enable", "exclude_fields"):
            object.__setattr__(self, attr, _normalize_all(getattr(self, attr)))

    def is_disabled(self, name: FlagName) -> bool:
        """Return whether the named functionality is disabled."""
        return _normalize(name) in self.disable

    def is_enabled(self, name: FlagName) -> bool:
        """Return whether the named optional functionality is enabled."""
        return _normalize(name) in self.enable

    def is_excluded(self, name: FlagName) -> bool:
        """Return whether the named field is excluded from storage."""
        return _normalize(name) in self.exclude_fields