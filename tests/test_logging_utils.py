"""
Tests for structured JSONL logging.
"""

import json

from safety_trends.logging_utils import JSONLLogger, generate_run_id, get_logger, get_versions


def _records(log_file):
    return [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]


def test_generate_run_id_is_unique():
    assert generate_run_id() != generate_run_id()


def test_get_versions_includes_pandas():
    versions = get_versions()
    assert "python" in versions
    assert "pandas" in versions


class TestJSONLLogger:
    """Tests for JSONLLogger."""

    def test_records_have_standard_keys(self, tmp_path):
        with get_logger("build_test", run_id="run1", log_dir=tmp_path) as logger:
            logger.info("hello", extra={"window": "1year"})
            logger.log_trend_stats({"time_window": "1year", "skipped_records": 3})

        records = _records(tmp_path / "build_test_run1.jsonl")
        assert records[0]["message"] == "Logger initialized"
        assert "versions" in records[0]["extra"]
        assert records[1]["extra"] == {"window": "1year"}
        assert records[2]["extra"]["trend_stats"]["skipped_records"] == 3
        assert records[-1]["message"] == "Logger closing"
        assert all(r["run_id"] == "run1" for r in records)

    def test_exception_is_logged(self, tmp_path):
        try:
            with JSONLLogger("failing", run_id="run2", log_dir=tmp_path):
                raise KeyError("missing")
        except KeyError:
            pass

        levels = [r["level"] for r in _records(tmp_path / "failing_run2.jsonl")]
        assert "ERROR" in levels

    def test_registration_helpers(self, tmp_path):
        logger = JSONLLogger("helpers", run_id="run3", log_dir=tmp_path)
        logger.log_config({"grid_size": 0.01})
        logger.log_inputs({"points": ["a.csv"]})
        logger.log_outputs({"trends_json": "out.json"})
        logger.log_metrics({"neighborhoods": 4})
        logger.close()

        messages = [r["message"] for r in _records(tmp_path / "helpers_run3.jsonl")]
        assert messages[1:5] == [
            "Configuration loaded", "Inputs registered", "Outputs registered", "Metrics recorded",
        ]
