"""
Tests for JavaScript expression evaluation.
"""
from analytics import metrics
from analytics.expressions import build_body, evaluate, evaluate_expression, is_eval_error
from analytics.jsvalues import JS_UNDEFINED


class TestBuildBody:
    def test_expression_is_wrapped(self):
        assert build_body("x + 1") == "return (\nx + 1\n);"

    def test_explicit_return_is_kept(self):
        body = "const y = x + 1;\nreturn y;"
        assert build_body(body) == body

    def test_return_must_be_a_whole_word(self):
        assert build_body("returned + 1") == "return (\nreturned + 1\n);"

    def test_library_is_prepended(self):
        assert build_body("f()", "function f() { return 1; }") == "function f() { return 1; }\n\nreturn (\nf()\n);"


class TestEvaluateExpression:
    """Test soft-fail evaluation"""

    def test_arithmetic(self):
        assert evaluate_expression("1 + 2", {}) == 3

    def test_context_values(self):
        assert evaluate_expression("x * 2", {"x": 10}) == 20
        assert evaluate_expression("name.toUpperCase()", {"name": "bob"}) == "BOB"

    def test_multi_statement_body(self):
        assert evaluate_expression("const y = x + 1;\nreturn y;", {"x": 10}) == 11

    def test_object_literal(self):
        """A bare object literal is an expression, not a block"""
        assert evaluate_expression("{ a: 1, b: 'two' }", {}) == {"a": 1, "b": "two"}

    def test_library_script(self):
        lib = "function double(n) { return n * 2; }"
        assert evaluate_expression("double(4)", {}, lib) == 8

    def test_reference_error(self):
        value = evaluate_expression("undefinedVar + 1", {})
        assert value == "[EVAL_ERROR: undefinedVar is not defined]"
        assert is_eval_error(value)

    def test_syntax_error(self):
        assert is_eval_error(evaluate_expression("1 +", {}))

    def test_thrown_string(self):
        assert evaluate_expression("(() => { throw 'oops'; })()", {}) == "[EVAL_ERROR: oops]"

    def test_is_eval_error_only_for_sentinel_strings(self):
        assert not is_eval_error("fine")
        assert not is_eval_error(42)


class TestEvaluate:
    def test_success_text_uses_json_for_objects(self):
        result = evaluate("[1, 2]", {})
        assert result.ok
        assert result.value == [1, 2]
        assert result.text == "[1,2]"

    def test_success_text_for_primitives(self):
        assert evaluate("'abc'", {}).text == "abc"
        assert evaluate("true", {}).text == "true"
        assert evaluate("1 / 0", {}).text == "Infinity"

    def test_undefined_value(self):
        result = evaluate("undefined", {})
        assert result.ok
        assert result.value is JS_UNDEFINED
        assert result.text == "undefined"

    def test_undefined_binding_passed_back_in(self):
        assert evaluate_expression("typeof x", {"x": JS_UNDEFINED}) == "undefined"
        assert evaluate_expression("typeof x", {"x": None}) == "object"

    def test_error_is_tagged(self):
        result = evaluate("null.x", {})
        assert not result.ok
        assert result.error.name == "TypeError"

    def test_console_output_captured(self):
        result = evaluate("console.log('hi', 2); return 1;", {})
        assert result.ok
        assert result.logs == ["hi 2"]

    def test_timeout(self):
        result = evaluate("while (true) {}", {}, timeout_ms=200)
        assert not result.ok
        assert result.error.name == "TimeoutError"

    def test_metrics_recorded(self):
        evaluate("1", {})
        evaluate("nope", {})
        assert metrics.counter_value("expression_evals_total", {"status": "ok"}) == 1
        assert metrics.counter_value("expression_evals_total", {"status": "error"}) == 1
