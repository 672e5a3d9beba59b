from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from .canonical import reachable_fingerprint, to_canonical_json
from .models import Pal, PalId, SortOrder

logger = logging.getLogger(__name__)


class PalDirectory(Protocol):
    """Anything exposing ``pals_by_id``, e.g. ``PalBreedingDB``."""

    @property
    def pals_by_id(self) -> Mapping[PalId, Pal]: ...


def _sort_key(order: SortOrder):
    if order == SortOrder.RARITY:
        return lambda pal: (pal.breeding_power, pal.name, pal.id.sort_key)
    return lambda pal: (pal.name, pal.id.sort_key)


@dataclass(frozen=True)
class ReachablePalsReport:
    """Display-ready view of a reachability result."""

    pals: tuple[Pal, ...] = ()
    reachable_ids: frozenset[PalId] = frozenset()
    owned_ids: frozenset[PalId] = frozenset()
    sort_by: SortOrder = SortOrder.NAME
    only_new: bool = False
    unresolved_ids: frozenset[PalId] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        reachable_ids: Collection[PalId] | None,
        owned_ids: Collection[PalId] | None,
        db: PalDirectory | None,
        *,
        sort_by: SortOrder = SortOrder.NAME,
        only_new: bool = False,
    ) -> "ReachablePalsReport":
        if reachable_ids is None or db is None:
            logger.info("Reachable ids or database missing; returning an empty report")
            return cls(sort_by=sort_by, only_new=only_new)

        owned = frozenset(owned_ids or ())
        resolved: list[Pal] = []
        unresolved: set[PalId] = set()
        for pal_id in reachable_ids:
            pal = db.pals_by_id.get(pal_id)
            if pal is None:
                unresolved.add(pal_id)
            else:
                resolved.append(pal)
        if unresolved:
            logger.warning(
                "Resolved %d of %d reachable ids; unknown: %s",
                len(resolved),
                len(reachable_ids),
                ", ".join(str(pal_id) for pal_id in sorted(unresolved, key=lambda pal_id: pal_id.sort_key)),
            )

        if only_new:
            resolved = [pal for pal in resolved if pal.id not in owned]
        resolved.sort(key=_sort_key(sort_by))
        return cls(
            pals=tuple(resolved),
            reachable_ids=frozenset(reachable_ids),
            owned_ids=owned,
            sort_by=sort_by,
            only_new=only_new,
            unresolved_ids=frozenset(unresolved),
        )

    @property
    def reachable_count(self) -> int:
        return len(self.reachable_ids)

    @property
    def owned_count(self) -> int:
        return len(self.owned_ids)

    @property
    def new_count(self) -> int:
        return len(self.reachable_ids - self.owned_ids)

    def is_breedable(self, pal: Pal | PalId) -> bool:
        pal_id = pal.id if isinstance(pal, Pal) else pal
        return pal_id in self.reachable_ids

    @property
    def fingerprint(self) -> str:
        return reachable_fingerprint(self.reachable_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "reachable_count": self.reachable_count,
            "owned_count": self.owned_count,
            "new_count": self.new_count,
            "sort_by": self.sort_by.value,
            "only_new": self.only_new,
            "fingerprint": self.fingerprint,
            "pals": [
                {
                    "id": pal.id,
                    "name": pal.name,
                    "breeding_power": pal.breeding_power,
                    "owned": pal.id in self.owned_ids,
                }
                for pal in self.pals
            ],
            "unresolved_ids": self.unresolved_ids,
        }

    def to_json(self) -> str:
        return to_canonical_json(self.to_dict())
