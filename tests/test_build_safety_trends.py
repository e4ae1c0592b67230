"""
Tests for the trend pipeline script (scripts/01_build_safety_trends.py).

Inputs are written to a temp directory; the script is run end to end and
its JSON and CSV outputs are checked.
"""

import importlib.util

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Polygon

from safety_trends.io_utils import read_json
from safety_trends.paths import SCRIPTS_DIR

SCRIPT = SCRIPTS_DIR / "01_build_safety_trends.py"


@pytest.fixture(scope="module")
def script():
    spec = importlib.util.spec_from_file_location("build_safety_trends", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def inputs(tmp_path):
    neighborhoods = gpd.GeoDataFrame(
        {"MAPNAME": ["Square Park", "Far Field"]},
        geometry=[
            Polygon([(0, 0), (1, 0), (1, 1), (0, 1)]),
            Polygon([(5, 5), (6, 5), (6, 6), (5, 6)]),
        ],
        crs="EPSG:4326",
    )
    neighborhoods_path = tmp_path / "neighborhoods.parquet"
    neighborhoods.to_parquet(neighborhoods_path)

    incidents_2025 = pd.DataFrame({
        "Lat": [0.5, 0.5, 0.6],
        "Lng": [0.5, 0.6, 0.5],
        "Dispatch_Date_Time": ["2025-02-01 10:00:00"] * 3,
        "Text_General_Code": ["Thefts", "Thefts", "Aggravated Assault"],
    })
    incidents_2024 = pd.DataFrame({
        "lat": [0.5, 5.5],
        "lng": [0.5, 5.5],
        "dispatch_date_time": ["2024-02-01 10:00:00", "2024-03-01 10:00:00"],
        "text_general_code": ["Thefts", "Burglary Residential"],
    })
    points_2025 = tmp_path / "incidents_2025.csv"
    points_2024 = tmp_path / "incidents_2024.csv"
    incidents_2025.to_csv(points_2025, index=False)
    incidents_2024.to_csv(points_2024, index=False)

    return neighborhoods_path, [points_2025, points_2024]


class TestBuildSafetyTrends:
    """End-to-end run of the pipeline script."""

    def test_writes_outputs(self, script, inputs, tmp_path):
        neighborhoods_path, point_paths = inputs
        output = tmp_path / "out" / "trends.json"

        argv = [
            "--neighborhoods", str(neighborhoods_path),
            "--points", *[str(p) for p in point_paths],
            "--window", "1year",
            "--window", "2years",
            "--output", str(output),
        ]
        assert script.main(argv) == 0

        payload = read_json(output)
        assert payload["windows"] == ["1year", "2years"]
        one_year = payload["trends"]["1year"]["square_park"]
        assert one_year["recent_count"] == 3
        assert one_year["previous_count"] == 1
        assert one_year["change_percent"] == 100
        assert one_year["crime_types"] == {"Aggravated Assault": 1, "Thefts": 2}
        assert set(one_year["time_ranges"]) == {"1year", "2years"}

        far_field = payload["trends"]["2years"]["far_field"]
        assert (far_field["recent_count"], far_field["previous_count"]) == (1, 0)

        summary = pd.read_csv(output.with_suffix(".csv"))
        assert list(summary["neighborhood_id"]) == ["far_field", "square_park"]

    def test_category_selection(self, script, inputs, tmp_path):
        neighborhoods_path, point_paths = inputs
        output = tmp_path / "violent.json"

        argv = [
            "--neighborhoods", str(neighborhoods_path),
            "--points", *[str(p) for p in point_paths],
            "--window", "2years",
            "--category", "Violent Crime",
            "--output", str(output),
        ]
        assert script.main(argv) == 0

        trends = read_json(output)["trends"]["2years"]
        assert trends["square_park"]["recent_count"] == 4
        assert trends["far_field"]["recent_count"] == 0
        assert read_json(output)["categories"] == ["Violent Crime"]

    def test_unknown_window_fails(self, script, inputs, tmp_path):
        neighborhoods_path, point_paths = inputs
        output = tmp_path / "never.json"

        argv = [
            "--neighborhoods", str(neighborhoods_path),
            "--points", *[str(p) for p in point_paths],
            "--window", "1decade",
            "--output", str(output),
        ]
        assert script.main(argv) == 1
        assert not output.exists()

    def test_unknown_window_before_valid_window_fails(self, script, inputs, tmp_path):
        neighborhoods_path, point_paths = inputs
        output = tmp_path / "mislabeled.json"

        argv = [
            "--neighborhoods", str(neighborhoods_path),
            "--points", *[str(p) for p in point_paths],
            "--window", "3years",
            "--window", "1year",
            "--output", str(output),
        ]
        assert script.main(argv) == 1
        assert not output.exists()
        assert not output.with_suffix(".csv").exists()

    def test_payload_windows_match_time_ranges(self, script, inputs, tmp_path):
        neighborhoods_path, point_paths = inputs
        output = tmp_path / "labeled.json"

        argv = [
            "--neighborhoods", str(neighborhoods_path),
            "--points", *[str(p) for p in point_paths],
            "--window", "2years",
            "--window", "1year",
            "--output", str(output),
        ]
        assert script.main(argv) == 0

        trends = read_json(output)["trends"]
        for window, records in trends.items():
            for record in records.values():
                assert window in record["time_ranges"]
                assert record["time_ranges"][window]["recent"] == record["recent_count"]
        assert trends["2years"]["far_field"]["recent_count"] == 1
        assert trends["1year"]["far_field"]["recent_count"] == 0
