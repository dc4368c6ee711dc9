"""
Tests for dashboard variable coercion and resolution.
"""
import math

from analytics.jsvalues import JS_UNDEFINED
from analytics.schemas import Variable
from analytics.variables import (
    FIXED_DEPARTMENT_ID,
    FIXED_OWNER_ID,
    build_card_variables,
    build_variable_context,
    coerce_plain_value,
    resolve_all_variables,
    resolve_variable_value,
)


class TestCoercePlainValue:
    """Test plain value coercion"""

    def test_numbers(self):
        assert coerce_plain_value("42") == 42
        assert isinstance(coerce_plain_value("42"), int)
        assert coerce_plain_value("3.5") == 3.5
        assert coerce_plain_value("-7") == -7

    def test_numbers_that_do_not_round_trip_stay_text(self):
        """Leading zeros, exponents and padding keep the raw string"""
        assert coerce_plain_value("042") == "042"
        assert coerce_plain_value("1e3") == "1e3"
        assert coerce_plain_value(" 42") == " 42"
        assert coerce_plain_value("1.50") == "1.50"

    def test_booleans_case_insensitive(self):
        assert coerce_plain_value("true") is True
        assert coerce_plain_value("FALSE") is False

    def test_text(self):
        assert coerce_plain_value("sales") == "sales"
        assert coerce_plain_value("") == ""
        assert coerce_plain_value("nan") == "nan"

    def test_infinity(self):
        assert math.isinf(coerce_plain_value("Infinity"))


class TestResolveAllVariables:
    def test_plain_variables_only(self):
        """Without expressions the result equals the coerced plain context"""
        variables = [
            Variable(name="department", value="sales"),
            Variable(name="year", value="2024"),
            Variable(name="active", value="true"),
        ]
        resolved = resolve_all_variables(variables)
        assert resolved == {"department": "sales", "year": 2024, "active": True}
        assert resolved == build_variable_context(variables)

    def test_later_plain_variable_wins(self):
        variables = [Variable(name="x", value="1"), Variable(name="x", value="2")]
        assert resolve_all_variables(variables) == {"x": 2}

    def test_expression_uses_plain_variables(self):
        variables = [
            Variable(name="a", value="2"),
            Variable(name="b", value="a * 3", isExpression=True),
        ]
        assert resolve_all_variables(variables) == {"a": 2, "b": 6}

    def test_expressions_do_not_see_each_other(self):
        variables = [
            Variable(name="a", value="2"),
            Variable(name="b", value="a * 3", isExpression=True),
            Variable(name="c", value="b + 1", isExpression=True),
        ]
        resolved = resolve_all_variables(variables)
        assert resolved["b"] == 6
        assert resolved["c"] == "[EVAL_ERROR: b is not defined]"

    def test_undefined_result_stays_undefined(self):
        variables = [Variable(name="nothing", value="undefined", isExpression=True)]
        assert resolve_all_variables(variables) == {"nothing": JS_UNDEFINED}

    def test_library_functions_available(self):
        variables = [Variable(name="label", value="shout('hi')", isExpression=True)]
        lib = "function shout(s) { return s.toUpperCase() + '!'; }"
        assert resolve_all_variables(variables, lib) == {"label": "HI!"}

    def test_empty_expression_resolves_to_raw_value(self):
        v = Variable(name="blank", value="", isExpression=True)
        assert resolve_variable_value(v, {}) == ""

    def test_plain_variable_keeps_raw_string(self):
        v = Variable(name="year", value="2024")
        assert resolve_variable_value(v, {}) == "2024"


class TestBuildCardVariables:
    def test_fixed_variables_come_first(self):
        variables = [Variable(name="region", value="north", dashboardId="d1")]
        result = build_card_variables(variables, "d1", department="sales", owner="alice")
        assert [v.name for v in result] == ["department", "owner", "region"]
        assert result[0].id == FIXED_DEPARTMENT_ID
        assert result[1].id == FIXED_OWNER_ID

    def test_filters_by_dashboard(self):
        variables = [
            Variable(name="a", value="1", dashboardId="d1"),
            Variable(name="b", value="2", dashboardId="d2"),
        ]
        assert [v.name for v in build_card_variables(variables, "d1")] == ["a"]

    def test_no_dashboard_keeps_everything(self):
        variables = [
            Variable(name="a", value="1", dashboardId="d1"),
            Variable(name="b", value="2", dashboardId="d2"),
        ]
        assert [v.name for v in build_card_variables(variables)] == ["a", "b"]

    def test_missing_request_values_add_nothing(self):
        assert build_card_variables([], "d1", department=None, owner="") == []
