import json

import pytest

from nutriscan.core.errors import ConfigurationError
from nutriscan.nutrition.reference import (
    FALLBACK_FOOD_REFERENCE,
    FoodReferenceTable,
    load_default_reference_table,
)


def test_packaged_table_covers_32_classes():
    table = load_default_reference_table()

    assert len(table) == 32
    assert list(table) == list(range(32))
    assert table.lookup(0).name == "Riz"
    assert table.lookup(5).reference_thickness_cm == pytest.approx(1.2)
    assert table.names()[31] == "Oignon"


def test_default_table_is_loaded_once():
    assert load_default_reference_table() is load_default_reference_table()


def test_unknown_class_falls_back_with_warning():
    table = load_default_reference_table()

    with pytest.warns(UserWarning, match="Unknown class id 99"):
        record = table.lookup(99)

    assert record == FALLBACK_FOOD_REFERENCE
    assert record.name == "Aliment inconnu"
    assert not table.is_valid_class_id(99)
    assert table.is_valid_class_id(3)


def test_table_is_read_only():
    table = load_default_reference_table()

    with pytest.raises(TypeError):
        table._records[0] = FALLBACK_FOOD_REFERENCE  # type: ignore[index]


def test_custom_table_from_json(tmp_path):
    path = tmp_path / "foods.json"
    path.write_text(
        json.dumps(
            {
                "foods": [
                    {
                        "id": 0,
                        "name": "Apple",
                        "density": 0.8,
                        "reference_thickness_cm": 6.0,
                        "calories_per_100g": 52,
                        "protein_per_100g": 0.3,
                        "carbs_per_100g": 13.8,
                        "fat_per_100g": 0.2,
                        "fiber_per_100g": 2.4,
                    }
                ]
            }
        ),
        encoding="utf-8",
    )

    table = FoodReferenceTable.from_json(path)

    assert table.lookup(0).name == "Apple"
    assert table.fallback == FALLBACK_FOOD_REFERENCE


def test_invalid_table_is_configuration_error(tmp_path):
    path = tmp_path / "foods.json"
    path.write_text(json.dumps({"foods": [{"id": 0, "name": "Broken"}]}), encoding="utf-8")

    with pytest.raises(ConfigurationError):
        FoodReferenceTable.from_json(path)
    with pytest.raises(ConfigurationError):
        FoodReferenceTable.from_json(tmp_path / "missing.json")
