from __future__ import annotations

from typing import Callable, Iterable

import pytest

from pal_reachability import BreedingResult, Pal, PalBreedingDB, PalId, RuntimeSettings

LETTERS = "ABCDEFGH"


@pytest.fixture
def pals() -> dict[str, Pal]:
    return {
        letter: Pal(id=PalId(dex_no=idx + 1), name=f"Pal{letter}", breeding_power=1000 - idx * 10)
        for idx, letter in enumerate(LETTERS)
    }


@pytest.fixture
def build_db(pals: dict[str, Pal]) -> Callable[[Iterable[tuple[str, str, str]]], PalBreedingDB]:
    """Build a database from ``(parent1, parent2, child)`` letter triples, stored exactly as given."""

    def _build(rules: Iterable[tuple[str, str, str]]) -> PalBreedingDB:
        results = [
            BreedingResult(parent1=pals[parent1], parent2=pals[parent2], child=pals[child])
            for parent1, parent2, child in rules
        ]
        return PalBreedingDB(pals.values(), results)

    return _build


@pytest.fixture
def serial_settings() -> RuntimeSettings:
    return RuntimeSettings(max_workers=1)


@pytest.fixture
def pooled_settings() -> RuntimeSettings:
    # min_parallel_pairs=1 forces every batch through the thread pool
    return RuntimeSettings(max_workers=4, min_parallel_pairs=1, chunk_size=1)
