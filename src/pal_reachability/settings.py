from __future__ import annotations

import math
import os
from dataclasses import dataclass, field

from .models import SortOrder


def _default_max_workers() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class RuntimeSettings:
    """Runtime settings loaded from environment with fail-fast validation."""

    max_workers: int = field(default_factory=_default_max_workers)
    min_parallel_pairs: int = 256
    chunk_size: int = 0
    timeout_seconds: float = 0.0
    default_sort: str = SortOrder.NAME.value

    @classmethod
    def from_env(cls) -> "RuntimeSettings":
        return cls(
            max_workers=_get_env_int("PAL_REACH_MAX_WORKERS", default=_default_max_workers(), minimum=1, maximum=1_024),
            min_parallel_pairs=_get_env_int("PAL_REACH_MIN_PARALLEL_PAIRS", default=256, minimum=1),
            chunk_size=_get_env_int("PAL_REACH_CHUNK_SIZE", default=0, minimum=0),
            timeout_seconds=_get_env_float("PAL_REACH_TIMEOUT_SECONDS", default=0.0, minimum=0.0),
            default_sort=os.getenv("PAL_REACH_DEFAULT_SORT", SortOrder.NAME.value),
        ).normalized()

    @property
    def timeout(self) -> float | None:
        """Return the timeout in seconds, or None when unbounded."""
        return self.timeout_seconds if self.timeout_seconds > 0 else None

    @property
    def sort_order(self) -> SortOrder:
        return SortOrder(self.default_sort)

    def normalized(self) -> "RuntimeSettings":
        """Validate and normalize all fields. Raises ValueError on invalid configuration."""
        if self.max_workers < 1:
            raise ValueError(f"PAL_REACH_MAX_WORKERS must be >= 1, got: {self.max_workers}")
        if self.min_parallel_pairs < 1:
            raise ValueError(f"PAL_REACH_MIN_PARALLEL_PAIRS must be >= 1, got: {self.min_parallel_pairs}")
        if self.chunk_size < 0:
            raise ValueError(f"PAL_REACH_CHUNK_SIZE must be >= 0, got: {self.chunk_size}")
        if math.isnan(self.timeout_seconds) or self.timeout_seconds < 0:
            raise ValueError(f"PAL_REACH_TIMEOUT_SECONDS must be >= 0, got: {self.timeout_seconds}")

        default_sort = self.default_sort.strip().lower()
        if default_sort not in {order.value for order in SortOrder}:
            raise ValueError("PAL_REACH_DEFAULT_SORT must be one of: name, rarity")
        return RuntimeSettings(
            max_workers=self.max_workers,
            min_parallel_pairs=self.min_parallel_pairs,
            chunk_size=self.chunk_size,
            timeout_seconds=float(self.timeout_seconds),
            default_sort=default_sort,
        )


def _get_env_int(name: str, default: int, minimum: int, maximum: int = 10_000_000) -> int:
    """Parse an integer from an environment variable with bounds checking.

    Args:
        name: Environment variable name.
        default: Value to return if the variable is unset.
        minimum: Inclusive lower bound.
        maximum: Inclusive upper bound.

    Returns:
        The parsed integer, guaranteed to be within [minimum, maximum].

    Raises:
        ValueError: If the value is not an integer or is outside bounds.
    """
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got: {raw!r}") from exc
    if parsed < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got: {parsed}")
    if parsed > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got: {parsed}")
    return parsed


def _get_env_float(name: str, default: float, minimum: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got: {raw!r}") from exc
    if math.isnan(parsed) or parsed < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got: {parsed}")
    return parsed
