from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

_PAL_ID_RE = re.compile(r"^(\d+)([bB]?)$")


class SortOrder(str, Enum):
    NAME = "name"
    RARITY = "rarity"


class PalId(BaseModel):
    """Paldeck number plus variant flag; unique per species."""

    model_config = ConfigDict(frozen=True)

    dex_no: int = Field(ge=0)
    is_variant: bool = False

    @classmethod
    def parse(cls, value: str) -> "PalId":
        match = _PAL_ID_RE.match(value.strip())
        if match is None:
            raise ValueError(f"Invalid pal id: {value!r}")
        return cls(dex_no=int(match.group(1)), is_variant=bool(match.group(2)))

    @property
    def sort_key(self) -> tuple[int, bool]:
        return (self.dex_no, self.is_variant)

    def __str__(self) -> str:
        return f"{self.dex_no}{'B' if self.is_variant else ''}"


class Pal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: PalId
    name: str
    breeding_power: int = 0

    @field_validator("name")
    @classmethod
    def _name_non_empty(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must be non-empty")
        return stripped

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class BreedingResult(BaseModel):
    """One production rule outcome. Only ``child`` matters for reachability."""

    model_config = ConfigDict(frozen=True)

    parent1: Pal
    parent2: Pal
    child: Pal
    probability: float = Field(default=1.0, ge=0.0, le=1.0)


class PalRecord(BaseModel):
    id: str
    name: str
    breeding_power: int = 0

    def to_pal(self) -> Pal:
        return Pal(id=PalId.parse(self.id), name=self.name, breeding_power=self.breeding_power)


class BreedingRecord(BaseModel):
    parent1: str
    parent2: str
    child: str
    probability: float = Field(default=1.0, ge=0.0, le=1.0)


class BreedingDatabaseDocument(BaseModel):
    """On-disk JSON shape of a breeding database."""

    pals: list[PalRecord]
    breeding: list[BreedingRecord] = Field(default_factory=list)


class ReachabilityError(Exception):
    pass


class InvalidBreedingDatabaseError(ReachabilityError, ValueError):
    pass


class ReachabilityCancelled(ReachabilityError):
    pass


class ReachabilityTimeout(ReachabilityCancelled):
    pass
