from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Protocol, runtime_checkable

from pydantic import ValidationError

from .models import (
    BreedingDatabaseDocument,
    BreedingResult,
    InvalidBreedingDatabaseError,
    Pal,
    PalId,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class BreedingLookup(Protocol):
    """Read-only production relation consumed by the reachability engine."""

    def lookup(self, parent1: PalId, parent2: PalId) -> Iterable[BreedingResult]: ...


class PalBreedingDB:
    """Immutable breeding table keyed by ``(parent1, parent2)`` in the order supplied.

    Only the orderings present in ``results`` are stored. Callers that need the
    symmetric relation must query both ``(a, b)`` and ``(b, a)``.
    """

    def __init__(self, pals: Iterable[Pal], results: Iterable[BreedingResult] = ()) -> None:
        pals_by_id: dict[PalId, Pal] = {}
        for pal in pals:
            if pal.id in pals_by_id:
                raise InvalidBreedingDatabaseError(f"Duplicate pal id {pal.id}")
            pals_by_id[pal.id] = pal
        if not pals_by_id:
            raise InvalidBreedingDatabaseError("Breeding database must contain at least one pal")

        table: dict[PalId, dict[PalId, list[BreedingResult]]] = defaultdict(lambda: defaultdict(list))
        count = 0
        for result in results:
            for role, pal in (("parent1", result.parent1), ("parent2", result.parent2), ("child", result.child)):
                if pal.id not in pals_by_id:
                    raise InvalidBreedingDatabaseError(f"Breeding result {role} {pal.id} is not a known pal")
            table[result.parent1.id][result.parent2.id].append(result)
            count += 1

        self._pals_by_id: Mapping[PalId, Pal] = MappingProxyType(pals_by_id)
        self._breeding_by_parent: Mapping[PalId, Mapping[PalId, tuple[BreedingResult, ...]]] = MappingProxyType(
            {
                parent1: MappingProxyType({parent2: tuple(entries) for parent2, entries in by_second.items()})
                for parent1, by_second in table.items()
            }
        )
        self.result_count = count

    @property
    def pals_by_id(self) -> Mapping[PalId, Pal]:
        return self._pals_by_id

    @property
    def breeding_by_parent(self) -> Mapping[PalId, Mapping[PalId, tuple[BreedingResult, ...]]]:
        return self._breeding_by_parent

    def __len__(self) -> int:
        return len(self._pals_by_id)

    def lookup(self, parent1: PalId, parent2: PalId) -> tuple[BreedingResult, ...]:
        by_second = self._breeding_by_parent.get(parent1)
        if by_second is None:
            return ()
        return by_second.get(parent2, ())

    def pal(self, pal_id: PalId | str) -> Pal:
        key = PalId.parse(pal_id) if isinstance(pal_id, str) else pal_id
        try:
            return self._pals_by_id[key]
        except KeyError as exc:
            raise KeyError(f"Unknown pal id {key}") from exc

    @classmethod
    def from_document(cls, document: BreedingDatabaseDocument) -> "PalBreedingDB":
        try:
            pals = [record.to_pal() for record in document.pals]
        except ValueError as exc:
            raise InvalidBreedingDatabaseError(f"Invalid pal record: {exc}") from exc
        by_id = {pal.id: pal for pal in pals}

        def resolve(raw: str, where: str) -> Pal:
            try:
                pal_id = PalId.parse(raw)
            except ValueError as exc:
                raise InvalidBreedingDatabaseError(f"{where}: {exc}") from exc
            pal = by_id.get(pal_id)
            if pal is None:
                raise InvalidBreedingDatabaseError(f"{where} references unknown pal {pal_id}")
            return pal

        results = [
            BreedingResult(
                parent1=resolve(record.parent1, f"breeding[{idx}].parent1"),
                parent2=resolve(record.parent2, f"breeding[{idx}].parent2"),
                child=resolve(record.child, f"breeding[{idx}].child"),
                probability=record.probability,
            )
            for idx, record in enumerate(document.breeding)
        ]
        return cls(pals, results)

    @classmethod
    def from_json(cls, raw: str) -> "PalBreedingDB":
        try:
            document = BreedingDatabaseDocument.model_validate_json(raw)
        except ValidationError as exc:
            raise InvalidBreedingDatabaseError(f"Malformed breeding database: {exc}") from exc
        return cls.from_document(document)

    @classmethod
    def load(cls, path: Path) -> "PalBreedingDB":
        db = cls.from_json(path.read_text(encoding="utf-8"))
        logger.info("Loaded breeding database %s: %d pals, %d results", path, len(db), db.result_count)
        return db
