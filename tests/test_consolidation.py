"""
Tests for table summation and statement flattening
"""
import pytest

from bism.models.schemas import EERRCategory, EERRData, EERRRow
from bism.services.consolidation import consolidate_statements, flatten_statement, sum_tables


def _items(rows):
    return [row["Item"] for row in rows]


class TestSumTables:
    """Test suite for sum_tables."""

    def test_sums_amounts_and_averages_percentages(self):
        result = sum_tables(
            [{"Item": "X", "Enero Monto": 100, "Enero %": 10}],
            [{"Item": "X", "Enero Monto": 50, "Enero %": 20}],
        )

        assert result == [{"Item": "X", "Enero Monto": 150, "Enero %": 15}]

    def test_single_positive_percentage_is_kept(self):
        result = sum_tables(
            [{"Item": "X", "Enero %": 12}],
            [{"Item": "X", "Enero %": 0}],
        )
        assert result[0]["Enero %"] == 12

    def test_no_positive_percentage(self):
        result = sum_tables([{"Item": "X", "Enero %": -5}], [{"Item": "X", "Enero %": ""}])
        assert result[0]["Enero %"] == 0

    def test_union_of_items_in_first_seen_order(self):
        result = sum_tables(
            [{"Item": "Ventas", "Enero Monto": 1}, {"Item": "Arriendo", "Enero Monto": 2}],
            [{"Item": "Luz", "Enero Monto": 3}, {"Item": "Ventas", "Enero Monto": 4}],
        )

        assert _items(result) == ["Ventas", "Arriendo", "Luz"]
        assert result[0]["Enero Monto"] == 5
        assert result[2]["Enero Monto"] == 3

    def test_missing_and_text_cells_count_as_zero(self):
        result = sum_tables(
            [{"Item": "X", "Enero Monto": "$1,000", "Febrero Monto": "#DIV/0!"}],
            [{"Item": "X", "Enero Monto": None}],
        )

        assert result[0]["Enero Monto"] == 1000
        assert result[0]["Febrero Monto"] == 0

    def test_commutative(self):
        table_a = [{"Item": "X", "Enero Monto": 100, "Enero %": 10}, {"Item": "Y", "Enero Monto": 7}]
        table_b = [{"Item": "Y", "Enero Monto": 3, "Enero %": 4}, {"Item": "X", "Enero Monto": 50, "Enero %": 20}]

        forward = {row["Item"]: row for row in sum_tables(table_a, table_b)}
        backward = {row["Item"]: row for row in sum_tables(table_b, table_a)}

        assert forward == backward

    def test_empty_tables(self):
        assert sum_tables([], []) == []


class TestFlattenStatement:
    """Test suite for flatten_statement and consolidate_statements."""

    @pytest.fixture
    def statement(self):
        def make(amount):
            return EERRData(
                sheet_name="EERR",
                months=["ENERO"],
                categories=[
                    EERRCategory(
                        name="OTROS GASTOS",
                        rows=[EERRRow(item="Arriendo", columns={"ENERO Monto": amount, "ENERO %": 10})],
                        total=EERRRow(item="TOTAL OTROS GASTOS", columns={"ENERO Monto": amount, "ENERO %": 10}),
                    ),
                    EERRCategory(name="EBIDTA", rows=[EERRRow(item="EBIDTA", columns={"ENERO Monto": -amount})]),
                ],
            )
        return make

    def test_rows_then_total(self, statement):
        rows = flatten_statement(statement(100))

        assert _items(rows) == ["Arriendo", "TOTAL OTROS GASTOS", "EBIDTA"]
        assert rows[0] == {"Item": "Arriendo", "ENERO Monto": 100.0, "ENERO %": 10.0}

    def test_none(self):
        assert flatten_statement(None) == []

    def test_flat_rows_rebuild_statement_rows(self, statement):
        eerr = statement(100)

        rebuilt = [EERRRow.from_excel_row(row) for row in flatten_statement(eerr)]

        assert rebuilt[0] == eerr.categories[0].rows[0]
        assert rebuilt[1] == eerr.categories[0].total
        assert rebuilt[2].get("ENERO") == -100

    def test_consolidate(self, statement):
        rows = consolidate_statements(statement(100), statement(50))

        assert rows[0] == {"Item": "Arriendo", "ENERO Monto": 150.0, "ENERO %": 10.0}
        assert rows[2]["ENERO Monto"] == -150.0

    def test_consolidate_with_missing_branch(self, statement):
        rows = consolidate_statements(statement(100), None)
        assert rows[1]["ENERO Monto"] == 100.0
