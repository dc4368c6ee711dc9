"""
Tests for the card pipeline: substitution, post-processing and column types.
"""
import pytest

from analytics import metrics
from analytics.errors import CardExecutionError, DataSourceNotFoundError
from analytics.pipeline import card_queries, process_card, run_card
from analytics.schemas import CardConfig, DataSource, QueryDefinition, QueryResult, Variable

DEMO = DataSource(id="demo", name="Demo", type="LocalStorage (Demo)")


class TestCardQueries:
    def test_legacy_query(self):
        card = CardConfig(title="t", query="SELECT 1", dataSourceId="demo")
        queries = card_queries(card)
        assert len(queries) == 1
        assert queries[0].query == "SELECT 1"

    def test_queries_supersede_legacy(self):
        card = CardConfig(
            query="SELECT 1",
            dataSourceId="demo",
            queries=[QueryDefinition(id="q1", dataSourceId="demo", query="SELECT 2")],
        )
        assert [q.id for q in card_queries(card)] == ["q1"]

    def test_queries_without_source_skipped(self):
        card = CardConfig(queries=[QueryDefinition(id="q1", query="SELECT 2")])
        assert card_queries(card) == []


class TestProcessCard:
    """Test post-processing of already fetched results"""

    def test_without_script_passes_first_result(self):
        card = CardConfig(title="Orders", columnTypes={"total": "currency"})
        result = QueryResult(columns=["id", "total"], rows=[[1, 10.5], [2, 3]])
        outcome = process_card(card, [result], [])
        assert outcome.error is None
        assert outcome.result == result
        assert outcome.column_types == {"id": "integer", "total": "currency"}
        assert outcome.title == "Orders"

    def test_explicit_saved_types_take_precedence(self):
        card = CardConfig(title="Orders", columnTypes={"id": "text"})
        result = QueryResult(columns=["id"], rows=[[1]])
        outcome = process_card(card, [result], [], saved_column_types={"id": "decimal"})
        assert outcome.column_types == {"id": "decimal"}

    def test_no_results(self):
        outcome = process_card(CardConfig(title="Empty"), [], [])
        assert outcome.result.columns == []
        assert outcome.column_types == {}

    def test_title_and_description_substituted(self):
        card = CardConfig(title="Sales for {{department}}", description="Year {{year + 1}}")
        variables = [Variable(name="year", value="2023")]
        outcome = process_card(card, [], variables, department="north")
        assert outcome.title == "Sales for north"
        assert outcome.description == "Year 2024"

    def test_script_transforms_rows(self):
        card = CardConfig(
            title="Big orders",
            postProcessingScript="console.log(data.length); return data.filter(r => r.total > minTotal);",
        )
        result = QueryResult(columns=["id", "total"], rows=[[1, 50], [2, 150.5]])
        outcome = process_card(card, [result], [Variable(name="minTotal", value="100")])
        assert outcome.result.columns == ["id", "total"]
        assert outcome.result.rows == [[2, 150.5]]
        assert outcome.logs == ["2"]
        assert outcome.column_types == {"id": "integer", "total": "decimal"}

    def test_script_column_with_undefined_first_value(self):
        card = CardConfig(
            title="Notes",
            postProcessingScript="return data.map(r => ({ id: r.id, note: r.id > 1 ? 'x' : undefined }));",
        )
        result = QueryResult(columns=["id"], rows=[[1], [2]])
        outcome = process_card(card, [result], [])
        assert outcome.result.columns == ["id", "note"]
        assert outcome.result.rows == [[1, None], [2, "x"]]

    def test_script_sees_all_datasets(self):
        card = CardConfig(title="Second", postProcessingScript="return datasets[1];")
        first = QueryResult(columns=["a"], rows=[[1]])
        second = QueryResult(columns=["b"], rows=[["x"], ["y"]])
        outcome = process_card(card, [first, second], [])
        assert outcome.result.columns == ["b"]
        assert outcome.result.rows == [["x"], ["y"]]

    def test_script_failure_reported_with_logs(self):
        card = CardConfig(title="Broken", postProcessingScript="console.log('start'); throw new Error('boom');")
        outcome = process_card(card, [QueryResult(columns=["a"], rows=[[1]])], [])
        assert outcome.error == "Post-processing script failed: \nError: boom"
        assert outcome.logs == ["start"]
        assert outcome.result is None
        assert metrics.counter_value("card_runs_total", {"status": "script_error"}) == 1


class TestRunCard:
    """Test end-to-end execution against the demo store"""

    def test_query_with_variables(self):
        card = CardConfig(
            dashboardId="d1",
            title="{{status}} orders",
            query="SELECT id, total FROM orders WHERE status = '{{status}}' ORDER BY id",
            dataSourceId="demo",
        )
        variables = [
            Variable(name="status", value="Completed", dashboardId="d1"),
            Variable(name="status", value="Shipped", dashboardId="other"),
        ]
        outcome = run_card(card, [DEMO], variables)
        assert outcome.title == "Completed orders"
        assert outcome.result.columns == ["id", "total"]
        assert outcome.result.rows == [[1, 150.5], [2, 75.0]]
        assert outcome.column_types == {"id": "integer", "total": "decimal"}

    def test_multiple_queries(self):
        card = CardConfig(
            title="Users and orders",
            queries=[
                QueryDefinition(id="q1", dataSourceId="demo", query="SELECT id FROM users ORDER BY id"),
                QueryDefinition(id="q2", dataSourceId="demo", query="SELECT user_id FROM orders"),
            ],
            postProcessingScript=(
                "const counts = {};\n"
                "datasets[1].forEach(o => { counts[o.user_id] = (counts[o.user_id] || 0) + 1; });\n"
                "return data.map(u => ({ id: u.id, orders: counts[u.id] || 0 }));"
            ),
        )
        outcome = run_card(card, [DEMO], [])
        assert outcome.result.rows == [[101, 2], [102, 2]]

    def test_unknown_data_source(self):
        card = CardConfig(title="x", query="SELECT 1", dataSourceId="missing")
        with pytest.raises(DataSourceNotFoundError):
            run_card(card, [DEMO], [])

    def test_no_queries(self):
        with pytest.raises(CardExecutionError) as exc:
            run_card(CardConfig(title="x"), [DEMO], [])
        assert str(exc.value) == "No valid queries configured for this card."

    def test_query_failure(self):
        card = CardConfig(title="x", query="SELECT * FROM nowhere", dataSourceId="demo")
        with pytest.raises(CardExecutionError):
            run_card(card, [DEMO], [])
        assert metrics.counter_value("card_runs_total", {"status": "query_error"}) == 1
