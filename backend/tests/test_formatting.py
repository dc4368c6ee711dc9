"""
Tests for display formatting of cell values.
"""
from analytics.formatting import format_number, format_value
from analytics.schemas import FormattingSettings


class TestFormatValue:
    """Test per-type formatting with dashboard settings"""

    def test_currency_defaults(self):
        assert format_value(1234.5, "currency", None) == "R$ 1.234,50"

    def test_currency_suffix(self):
        settings = FormattingSettings(
            currencySymbol="€", currencyPosition="suffix", decimalSeparator=".", thousandsSeparator=","
        )
        assert format_value(1234.5, "currency", settings) == "1,234.50 €"

    def test_negative_currency(self):
        assert format_value(-1234.5, "currency", None) == "R$ -1.234,50"

    def test_integer(self):
        assert format_value(1234567, "integer", None) == "1.234.567"

    def test_decimal_from_string(self):
        assert format_value("2.5", "decimal", None) == "2,50"

    def test_date(self):
        assert format_value("2023-01-15", "date", None) == "15/01/2023"

    def test_datetime(self):
        assert format_value("2023-01-15T10:30:00Z", "datetime", None) == "15/01/2023 10:30:00"

    def test_datetime_converted_to_utc(self):
        assert format_value("2023-01-15T10:30:00+02:00", "datetime", None) == "15/01/2023 08:30:00"

    def test_custom_date_pattern(self):
        settings = FormattingSettings(dateFormat="YYYY/MM/DD")
        assert format_value("2023-01-05", "date", settings) == "2023/01/05"

    def test_unparseable_date_is_unchanged(self):
        assert format_value("not a date", "date", None) == "not a date"

    def test_none_is_empty(self):
        assert format_value(None, "currency", None) == ""

    def test_text_and_unknown_types(self):
        assert format_value(True, "text", None) == "true"
        assert format_value(3, None, None) == "3"

    def test_non_numeric_number(self):
        assert format_value("abc", "decimal", None) == "NaN"


class TestFormatNumber:
    def test_percent(self):
        assert format_number(0.125, None, "percent", 1) == "12,5%"

    def test_zero_decimals(self):
        assert format_number(1234.4, None, "number", 0) == "1.234"

    def test_rounding_follows_binary_value(self):
        assert format_number(1.005, None, "number", 2) == "1,00"
