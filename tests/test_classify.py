"""
Tests for category selection and the period partition fold.
"""

import logging

import pandas as pd
import pytest

from safety_trends.classify import PeriodClassifier, is_category_selected
from safety_trends.schemas import PointRecord, SkipReason
from safety_trends.time_utils import Period


def _record(category="", timestamp="2025-04-01 10:00:00", lat=0.5, lon=0.5):
    return PointRecord(lat=lat, lon=lon, timestamp=timestamp, category=category)


class TestCategorySelection:
    """Tests for is_category_selected."""

    @pytest.mark.parametrize("selection", [None, []])
    def test_empty_selection_matches_everything(self, selection):
        assert is_category_selected(_record("Anything"), selection)
        assert is_category_selected(_record(""), selection)

    def test_violent_crime_excludes_property_types(self):
        selection = ["Violent Crime"]
        assert not is_category_selected(_record("Burglary Residential"), selection)
        assert is_category_selected(_record("Aggravated Assault"), selection)

    @pytest.mark.parametrize("label", [
        "Burglary Residential",
        "Motor Vehicle Theft",
        "Theft from Vehicle",
        "Vandalism/Criminal Mischief",
    ])
    def test_violent_crime_excluded_labels(self, label):
        assert not is_category_selected(_record(label), ["Violent Crime"])

    def test_violent_crime_matches_substring_of_exclusion(self):
        # Exclusion is by substring containment of the excluded label
        assert not is_category_selected(_record("Burglary Residential - Attempt"), ["Violent Crime"])
        assert is_category_selected(_record("Burglary Non-Residential"), ["Violent Crime"])

    def test_substring_match_is_case_sensitive(self):
        assert is_category_selected(_record("Motor Vehicle Theft"), ["Vehicle"])
        assert not is_category_selected(_record("Motor Vehicle Theft"), ["vehicle"])

    def test_any_selected_token_matches(self):
        selection = ["Vandalism", "Violent Crime"]
        assert is_category_selected(_record("Vandalism/Criminal Mischief"), selection)
        assert is_category_selected(_record("Robbery Firearm"), selection)
        assert not is_category_selected(_record("Theft from Vehicle"), selection)


class TestPeriodClassifier:
    """Tests for per-record classification."""

    @pytest.fixture
    def classifier(self):
        return PeriodClassifier("1year", analysis_year=2025)

    def test_recent(self, classifier):
        assert classifier.classify(_record(timestamp="2025-02-01")) == (Period.RECENT, None)

    def test_previous(self, classifier):
        assert classifier.classify(_record(timestamp="2024-02-01")) == (Period.PREVIOUS, None)

    def test_out_of_window(self, classifier):
        assert classifier.classify(_record(timestamp="2019-02-01")) == (None, SkipReason.OUT_OF_WINDOW)

    def test_missing_timestamp(self, classifier):
        assert classifier.classify(_record(timestamp=None)) == (None, SkipReason.MISSING_TIMESTAMP)

    def test_parse_error(self, classifier):
        assert classifier.classify(_record(timestamp="garbage")) == (
            None, SkipReason.TIMESTAMP_PARSE_ERROR,
        )

    def test_category_checked_before_timestamp(self):
        classifier = PeriodClassifier("1year", selected_categories=["Robbery"])
        assert classifier.classify(_record("Thefts", timestamp=None)) == (
            None, SkipReason.CATEGORY_FILTERED,
        )

    def test_window_bounds_fixed_at_construction(self):
        reference = pd.Timestamp("2025-06-01")
        classifier = PeriodClassifier("6months", reference_now=reference)
        assert classifier.window == "6months"
        assert classifier.classify(_record(timestamp="2025-05-01"))[0] is Period.RECENT
        assert classifier.classify(_record(timestamp="2024-07-01"))[0] is Period.PREVIOUS


class TestPartition:
    """Tests for the partition fold."""

    def test_buckets_and_counts(self):
        records = [
            _record("Robbery", "2025-01-10"),
            _record("Robbery", "2024-05-10"),
            _record("Robbery", "2024-06-10"),
            _record("Robbery", None),
            _record("Robbery", "garbage"),
            _record("Robbery", "2010-01-01"),
            _record("Thefts", "2025-01-10"),
        ]
        classifier = PeriodClassifier("1year", selected_categories=["Robbery"])
        result = classifier.partition(records)

        assert result.total == 7
        assert result.recent == [records[0]]
        assert result.previous == [records[1], records[2]]
        assert result.skip_count(SkipReason.MISSING_TIMESTAMP) == 1
        assert result.skip_count(SkipReason.TIMESTAMP_PARSE_ERROR) == 1
        assert result.skip_count(SkipReason.OUT_OF_WINDOW) == 1
        assert result.skip_count(SkipReason.CATEGORY_FILTERED) == 1

    def test_parse_warnings_are_capped(self, caplog):
        records = [_record(timestamp=f"bad-{i}") for i in range(8)]
        classifier = PeriodClassifier("1year", max_parse_warnings=3)
        with caplog.at_level(logging.WARNING, logger="safety_trends.classify"):
            result = classifier.partition(records)
        assert result.skip_count(SkipReason.TIMESTAMP_PARSE_ERROR) == 8
        assert caplog.text.count("Timestamp parse error") == 3

    def test_unexpected_failure_is_counted(self, monkeypatch):
        classifier = PeriodClassifier("1year")
        calls = {"n": 0}
        original = classifier.classify

        def flaky(record):
            calls["n"] += 1
            if calls["n"] == 2:
                raise RuntimeError("boom")
            return original(record)

        monkeypatch.setattr(classifier, "classify", flaky)
        result = classifier.partition([_record(timestamp="2025-02-01")] * 3)
        assert len(result.recent) == 2
        assert result.skip_count(SkipReason.PROCESSING_ERROR) == 1
