import csv
import json
from pathlib import Path

import pytest
from PIL import Image

from nutriscan.core.pipeline import NutriScanPipeline


@pytest.fixture()
def scanned(make_detection_tensor, make_prototypes, unit_coeffs, cells):
    pipeline = NutriScanPipeline()
    tensor, dims0 = make_detection_tensor([((160, 160, 96, 96), {12: 0.8}, unit_coeffs)])
    protos, dims1 = make_prototypes(cells(30, 30, 4))
    return pipeline, pipeline.run(tensor, dims0, protos, dims1)


def test_write_result_json(tmp_path, scanned):
    from nutriscan.io import ResultsWriter

    pipeline, result = scanned
    writer = ResultsWriter(tmp_path / "out")

    path = writer.write_result(Path("meal.jpg"), result)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert path.name == "meal.json"
    assert payload["image"] == "meal.jpg"
    assert payload["detections"][0]["label"] == "Pizza"
    assert payload["detections"][0]["mask_pixels"] == 256


def test_summary_csv_has_single_header(tmp_path, scanned):
    from nutriscan.io import ResultsWriter

    _, result = scanned
    writer = ResultsWriter(tmp_path)
    writer.append_summary(Path("a.jpg"), result)
    writer.append_summary(Path("b.jpg"), result)

    with (tmp_path / "summary.csv").open(newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))

    assert [r["image"] for r in rows] == ["a.jpg", "b.jpg"]
    assert rows[0]["detections"] == "1"


def test_masks_only_saved_when_enabled(tmp_path, scanned):
    from nutriscan.io import ResultsWriter

    _, result = scanned
    detections = list(result.detections)

    assert ResultsWriter(tmp_path / "off").save_mask_images(Path("meal.jpg"), detections) == []

    writer = ResultsWriter(tmp_path / "on", save_masks=True)
    (mask_path,) = writer.save_mask_images(Path("meal.jpg"), detections)
    assert mask_path.name == "meal_0_12.png"
    with Image.open(mask_path) as img:
        assert img.size == (640, 640)
        assert img.getpixel((130, 130)) == 255
        assert img.getpixel((0, 0)) == 0

    overlay = writer.save_overlay(Image.new("RGB", (320, 240)), Path("meal.jpg"), detections)
    assert overlay is not None and overlay.exists()
