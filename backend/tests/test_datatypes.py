"""
Tests for column type inference and saved-type reconciliation.
"""
from datetime import date, datetime

from analytics.datatypes import date_kind, date_kinds, infer_column_types, merge_column_types
from analytics.schemas import QueryResult


def _infer(values, **kwargs):
    result = QueryResult(columns=["col"], rows=[[v] for v in values])
    return infer_column_types(result, **kwargs)["col"]


class TestInferColumnTypes:
    """Test per-column type detection"""

    def test_no_rows_means_text(self):
        """Columns without rows are text"""
        result = QueryResult(columns=["id"], rows=[])
        assert infer_column_types(result) == {"id": "text"}

    def test_no_columns(self):
        assert infer_column_types(QueryResult(columns=[], rows=[])) == {}
        assert infer_column_types(None) == {}

    def test_integer_column(self):
        assert _infer([1, "2", 3]) == "integer"

    def test_decimal_column(self):
        assert _infer([1.5, "2.25", 3]) == "decimal"

    def test_boolean_wins_over_integer(self):
        """0/1 columns are classified as boolean first"""
        assert _infer([1, 0, 1]) == "boolean"
        assert _infer([True, False, "true"]) == "boolean"

    def test_date_column(self):
        assert _infer(["2023-01-15", "2023-02-10"]) == "date"

    def test_datetime_column(self):
        assert _infer(["2023-01-15T10:30:00Z"]) == "datetime"

    def test_single_datetime_makes_column_datetime(self):
        assert _infer(["2023-01-15", "2023-01-16T08:00:00Z"]) == "datetime"

    def test_text_column(self):
        assert _infer(["Alice", "Bob"]) == "text"

    def test_time_of_day_column_is_text(self):
        assert _infer(["10:30", "11:45"]) == "text"

    def test_mixed_numbers_and_words_is_text(self):
        assert _infer([1, "two", 3]) == "text"

    def test_blank_values_are_ignored(self):
        assert _infer([None, "", 7]) == "integer"

    def test_only_blank_values_is_text(self):
        assert _infer([None, "", "   "]) == "text"

    def test_native_date_values(self):
        assert _infer([date(2024, 1, 1)]) == "date"
        assert _infer([datetime(2024, 1, 1, 12, 0)]) == "datetime"

    def test_sample_size_limits_inspection(self):
        """Only the first rows are sampled"""
        values = list(range(50)) + ["not a number"]
        assert _infer(values) == "integer"
        assert _infer(values, sample_rows=51) == "text"

    def test_short_rows_are_treated_as_blank(self):
        result = QueryResult(columns=["a", "b"], rows=[[1], [2, "x"]])
        assert infer_column_types(result) == {"a": "integer", "b": "text"}


class TestDateKind:
    def test_words_are_not_dates(self):
        assert date_kind("Alice") == "none"
        assert date_kind("Completed") == "none"

    def test_time_only_strings_are_not_dates(self):
        """Strings without a calendar date are rejected by the Date parser"""
        assert date_kind("10:30") == "none"
        assert date_kind("2 pm") == "none"

    def test_ordinal_is_not_a_date(self):
        assert date_kind("5th") == "none"

    def test_loose_formats_accepted_by_date_parser(self):
        assert date_kind("PO-2023-01") != "none"

    def test_native_values(self):
        assert date_kinds([date(2024, 1, 1), datetime(2024, 1, 1, 8), None, 3]) == ["date", "datetime", "none", "none"]

    def test_numbers_are_not_dates(self):
        assert date_kind("2023") == "none"
        assert date_kind(20230115) == "none"

    def test_iso_date_and_datetime(self):
        assert date_kind("2023-01-15") == "date"
        assert date_kind("2023-01-15 10:30:00") == "datetime"


class TestMergeColumnTypes:
    def test_saved_types_override_inferred(self):
        inferred = {"a": "text", "b": "integer"}
        assert merge_column_types(inferred, {"a": "currency"}) == {"a": "currency", "b": "integer"}

    def test_saved_types_for_missing_columns_are_dropped(self):
        assert merge_column_types({"a": "text"}, {"z": "currency"}) == {"a": "text"}

    def test_no_saved_types(self):
        assert merge_column_types({"a": "date"}, None) == {"a": "date"}
