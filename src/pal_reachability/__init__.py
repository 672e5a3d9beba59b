from importlib.metadata import version

from .breeding_db import BreedingLookup, PalBreedingDB
from .canonical import reachable_fingerprint, to_canonical_json
from .models import (
    BreedingDatabaseDocument,
    BreedingRecord,
    BreedingResult,
    InvalidBreedingDatabaseError,
    Pal,
    PalId,
    PalRecord,
    ReachabilityCancelled,
    ReachabilityError,
    ReachabilityTimeout,
    SortOrder,
)
from .observers import (
    IterationObserver,
    IterationStats,
    LoggingIterationObserver,
    ReachabilitySummary,
    RecordingIterationObserver,
)
from .reachability import (
    BreedingReachability,
    ReachabilityResult,
    breeding_children,
    can_breed,
    enumerate_pairs,
    get_reachable_pals,
    merge_children,
)
from .report import ReachablePalsReport
from .settings import RuntimeSettings


def get_version() -> str:
    try:
        return version("pal-reachability")
    except Exception:
        return "0.0.0"


__all__ = [
    "BreedingDatabaseDocument",
    "BreedingLookup",
    "BreedingReachability",
    "BreedingRecord",
    "BreedingResult",
    "InvalidBreedingDatabaseError",
    "IterationObserver",
    "IterationStats",
    "LoggingIterationObserver",
    "Pal",
    "PalBreedingDB",
    "PalId",
    "PalRecord",
    "ReachabilityCancelled",
    "ReachabilityError",
    "ReachabilityResult",
    "ReachabilitySummary",
    "ReachabilityTimeout",
    "ReachablePalsReport",
    "RecordingIterationObserver",
    "RuntimeSettings",
    "SortOrder",
    "breeding_children",
    "can_breed",
    "enumerate_pairs",
    "get_reachable_pals",
    "get_version",
    "merge_children",
    "reachable_fingerprint",
    "to_canonical_json",
]
