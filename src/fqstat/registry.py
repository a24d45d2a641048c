"""
Registry of the statistics fqstat can compute.

Each entry maps a short name to a :class:`~fqstat.stats.Statistic`
subclass.  Every registered class must expose ``process`` and
``report`` and declare the report ``keys`` it owns.

Usage::

    from fqstat.registry import create_statistics

    stats = create_statistics()                     # all, registry order
    stats = create_statistics(["read_quality"])     # a subset
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Type

from .stats import (
    Statistic,
    ReadQualityStatistic,
    ReadLengthStatistic,
    BaseQualityPosStatistic,
    BaseCompositionPosStatistic,
)


class ReportKeyCollisionError(ValueError):
    """Raised when two statistics claim the same report key."""

    def __init__(self, key: str, first: str, second: str):
        self.key = key
        self.first = first
        self.second = second
        super().__init__(
            f"Report key '{key}' is claimed by both '{first}' and '{second}'"
        )


# Registry: name -> class, in default report order
_STATISTICS: Dict[str, Type[Statistic]] = {}

# ---------------------------------------------------------------------------
# Required API surface, used for validation only
# ---------------------------------------------------------------------------
_REQUIRED_METHODS = frozenset({"process", "report"})


def _validate_statistic(cls: Type[Statistic]) -> None:
    """Raise if *cls* does not look like a usable statistic."""
    missing = [
        method for method in _REQUIRED_METHODS
        if getattr(cls, method, None) is getattr(Statistic, method)
        or not callable(getattr(cls, method, None))
    ]
    if missing:
        raise TypeError(
            f"Statistic '{cls.__name__}' does not implement: {sorted(missing)}"
        )
    if not cls.name:
        raise TypeError(f"Statistic '{cls.__name__}' has no name")
    if not cls.keys:
        raise TypeError(f"Statistic '{cls.__name__}' declares no report keys")


def check_unique_keys(statistics: Iterable[Statistic]) -> None:
    """Raise :class:`ReportKeyCollisionError` if any report key is shared."""
    owners: Dict[str, str] = {}
    for stat in statistics:
        for key in stat.keys:
            if key in owners:
                raise ReportKeyCollisionError(key, owners[key], stat.name)
            owners[key] = stat.name


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def register_statistic(cls: Type[Statistic]) -> Type[Statistic]:
    """Add *cls* to the registry.  Usable as a class decorator."""
    _validate_statistic(cls)
    existing = _STATISTICS.get(cls.name)
    if existing is not None and existing is not cls:
        raise ValueError(f"A statistic named '{cls.name}' is already registered")
    for other in _STATISTICS.values():
        if other is cls:
            continue
        for key in cls.keys:
            if key in other.keys:
                raise ReportKeyCollisionError(key, other.name, cls.name)
    _STATISTICS[cls.name] = cls
    return cls


def available_statistics() -> List[str]:
    """Return the names of all registered statistics, in report order."""
    return list(_STATISTICS)


def get_statistic(name: str) -> Type[Statistic]:
    """Return the statistic class registered as *name*.

    Raises
    ------
    KeyError
        If no statistic has that name.
    """
    try:
        return _STATISTICS[name]
    except KeyError:
        raise KeyError(
            f"Unknown statistic: '{name}'. Choose from {available_statistics()}"
        ) from None


def create_statistics(names: Optional[Iterable[str]] = None) -> List[Statistic]:
    """Instantiate fresh statistics by name, or every registered one.

    Duplicate names are collapsed; the first occurrence keeps its place.
    """
    if names is None:
        names = available_statistics()
    seen = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return [get_statistic(name)() for name in seen]


for _cls in (
    ReadQualityStatistic,
    ReadLengthStatistic,
    BaseQualityPosStatistic,
    BaseCompositionPosStatistic,
):
    register_statistic(_cls)
