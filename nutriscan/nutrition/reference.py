"""Read-only per-class food reference table (density, thickness, nutrients per 100 g)."""

from __future__ import annotations

import json
import warnings
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping

from ..core.errors import ConfigurationError
from ..core.types import FoodReference

DEFAULT_TABLE_PATH = Path(__file__).with_name("food_reference.json")

# Generic record used when the model emits a class id the table does not know
FALLBACK_FOOD_REFERENCE = FoodReference(
    id=-1,
    name="Aliment inconnu",
    density=0.5,
    reference_thickness_cm=1.5,
    calories_per_100g=100.0,
    protein_per_100g=5.0,
    carbs_per_100g=15.0,
    fat_per_100g=3.0,
    fiber_per_100g=1.0,
    icon="❓",
)


def _record_from_dict(data: Mapping[str, Any]) -> FoodReference:
    try:
        return FoodReference(
            id=int(data["id"]),
            name=str(data["name"]),
            density=float(data["density"]),
            reference_thickness_cm=float(data["reference_thickness_cm"]),
            calories_per_100g=float(data["calories_per_100g"]),
            protein_per_100g=float(data["protein_per_100g"]),
            carbs_per_100g=float(data["carbs_per_100g"]),
            fat_per_100g=float(data["fat_per_100g"]),
            fiber_per_100g=float(data["fiber_per_100g"]),
            icon=str(data.get("icon", "")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid food reference record {dict(data)!r}: {exc}") from exc


class FoodReferenceTable(Mapping[int, FoodReference]):
    """Immutable ``class id -> FoodReference`` mapping with a fallback record.

    Built once and shared; safe for concurrent readers.
    """

    def __init__(
        self,
        records: Mapping[int, FoodReference],
        fallback: FoodReference = FALLBACK_FOOD_REFERENCE,
    ) -> None:
        self._records: Mapping[int, FoodReference] = MappingProxyType(
            {int(k): v for k, v in sorted(records.items())}
        )
        self.fallback = fallback

    def __getitem__(self, class_id: int) -> FoodReference:
        return self._records[class_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def lookup(self, class_id: int) -> FoodReference:
        """Reference for ``class_id``; never fails, unknown ids get the fallback."""
        record = self._records.get(class_id)
        if record is None:
            warnings.warn(f"Unknown class id {class_id}; using fallback food reference")
            return self.fallback
        return record

    def is_valid_class_id(self, class_id: int) -> bool:
        return class_id in self._records

    def names(self) -> List[str]:
        """Display names ordered by class id."""
        return [record.name for record in self._records.values()]

    @classmethod
    def from_json(cls, path: str | Path) -> "FoodReferenceTable":
        """Load a table from JSON: ``{"foods": [...], "fallback": {...}}``."""
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                data: Dict[str, Any] = json.load(handle)
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"cannot read food reference table {path}: {exc}") from exc

        records: Dict[int, FoodReference] = {}
        for entry in data.get("foods", []):
            record = _record_from_dict(entry)
            if record.id in records:
                raise ConfigurationError(f"duplicate class id {record.id} in {path}")
            records[record.id] = record
        fallback_data = data.get("fallback")
        fallback = _record_from_dict(fallback_data) if fallback_data else FALLBACK_FOOD_REFERENCE
        return cls(records, fallback=fallback)


@lru_cache(maxsize=1)
def load_default_reference_table() -> FoodReferenceTable:
    """The table shipped with the package, loaded once per process."""
    return FoodReferenceTable.from_json(DEFAULT_TABLE_PATH)


__all__ = [
    "DEFAULT_TABLE_PATH",
    "FALLBACK_FOOD_REFERENCE",
    "FoodReferenceTable",
    "load_default_reference_table",
]
