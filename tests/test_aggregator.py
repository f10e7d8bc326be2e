"""
Tests for the Libro de Compras Aggregator
"""
import pytest

from bism.constants import (
    EBITDA_LABEL,
    GASTOS_DE_OPERACION,
    GASTOS_DE_REMUNERACION,
    GROSS_MARGIN_LABEL,
    INGRESOS_OPERACIONALES,
    NET_RESULT_LABEL,
    OTROS_GASTOS,
    UNCLASSIFIED,
)
from bism.models.schemas import LedgerTransaction, Metric, PeriodLedger
from bism.services.aggregator import (
    aggregate_period,
    aggregate_periods,
    build_branch_statement,
    period_month_name,
)


def tx(cuenta, monto, **kwargs):
    return LedgerTransaction(cuenta=cuenta, monto_neto=monto, **kwargs)


class TestAggregatePeriod:
    """Test suite for the single-period path."""

    @pytest.fixture
    def november(self):
        return [
            tx("Ventas", 1_000_000),
            tx("Sueldo Personal", 300_000),
            tx("Arriendo", 100_000),
        ]

    def test_columns(self, november):
        eerr = aggregate_period(november, "2024-11")

        assert eerr.sheet_name == "Libro de Compras - 2024-11"
        assert eerr.months == ["Noviembre", "CONSOLIDADO"]
        assert eerr.month_to_period == {"Noviembre": "2024-11"}

    def test_category_order(self, november):
        eerr = aggregate_period(november, "2024-11")

        assert [c.name for c in eerr.categories] == [
            "INGRESOS OPERACIONALES",
            "GASTOS DE REMUNERACION",
            "GASTOS DE OPERACION",
            "GASTOS DE ADMINISTRACION",
            "OTROS GASTOS",
            "EBIDTA",
            "OTROS EGRESOS FUERA DE EXPLOTACION",
            "RESULTADO NETO",
        ]

    def test_results_and_percentages(self, november):
        eerr = aggregate_period(november, "2024-11")

        assert eerr.find_row(EBITDA_LABEL).get("Noviembre") == 600_000
        assert eerr.find_row(NET_RESULT_LABEL).get("Noviembre") == 600_000
        assert eerr.find_row("Ventas").get("Noviembre", Metric.PERCENT) == pytest.approx(100)
        assert eerr.find_row("Sueldo Personal").get("Noviembre", Metric.PERCENT) == pytest.approx(30)
        assert eerr.find_row("Arriendo").get("Noviembre", Metric.PERCENT) == pytest.approx(10)
        assert eerr.find_row(EBITDA_LABEL).get("Noviembre", Metric.PERCENT) == pytest.approx(60)

    def test_consolidado_column(self, november):
        ventas = aggregate_period(november, "2024-11").find_row("Ventas")

        assert ventas.get("CONSOLIDADO") == 1_000_000
        assert ventas.get("CONSOLIDADO", Metric.AVERAGE) == 1_000_000
        assert ventas.get("CONSOLIDADO", Metric.PERCENT) == pytest.approx(100)

    def test_totals(self, november):
        eerr = aggregate_period(november, "2024-11")

        income = eerr.find_category(INGRESOS_OPERACIONALES)
        assert income.total.item == GROSS_MARGIN_LABEL
        assert income.total.get("Noviembre") == 1_000_000

        remuneration = eerr.find_category(GASTOS_DE_REMUNERACION)
        assert remuneration.total.item == "TOTAL GASTOS DE REMUNERACION"
        assert remuneration.total.get("Noviembre") == sum(row.get("Noviembre") for row in remuneration.rows)

    def test_gross_margin(self):
        eerr = aggregate_period([
            tx("Ventas", 1000),
            tx("Costo de venta", 300),
            tx("Transbank", 20),
            tx("Bonificacion por tramo", 50),
        ], "2024-03")

        assert eerr.find_row(GROSS_MARGIN_LABEL).get("Marzo") == 730

    def test_manual_value_wins(self):
        eerr = aggregate_period([tx("Ventas", 1000), tx("Arriendo", 100)], "2024-03", {"Ventas": 2000})

        income = eerr.find_category(INGRESOS_OPERACIONALES)
        assert [row.item for row in income.rows].count("Ventas") == 1
        assert eerr.find_row("Ventas").get("Marzo") == 2000
        assert eerr.find_row("Arriendo").get("Marzo", Metric.PERCENT) == pytest.approx(5)

    def test_duplicate_accounts_are_summed(self):
        eerr = aggregate_period([tx("Arriendo", 50_000), tx("Arriendo", 50_000)], "2024-01")
        assert eerr.find_row("Arriendo").get("Enero") == 100_000

    def test_rows_differing_only_by_case_match_exactly(self):
        eerr = aggregate_period([tx("Gastos generales", 70), tx("Gastos Generales", 30)], "2024-01")

        operation = eerr.find_category(GASTOS_DE_OPERACION)
        administration = eerr.find_category("GASTOS DE ADMINISTRACION")
        assert [r.get("Enero") for r in operation.rows if r.item == "Gastos Generales"] == [30]
        assert [r.get("Enero") for r in administration.rows if r.item == "Gastos generales"] == [70]
        assert eerr.find_row(EBITDA_LABEL).get("Enero") == -100

    def test_extra_accounts_are_classified(self):
        eerr = aggregate_period([tx("Mantencion camioneta", 10), tx("Asesoria", 5, encabezado="otros gastos")], "2024-01")

        operation = eerr.find_category(GASTOS_DE_OPERACION)
        assert operation.rows[-1].item == "Mantencion camioneta"
        assert eerr.find_category(OTROS_GASTOS).rows[-1].item == "Asesoria"

    def test_unknown_manual_heading_is_unclassified(self):
        eerr = aggregate_period([tx("Ventas", 1000), tx("Terreno", 400, encabezado="INVERSIONES")], "2024-01")

        unclassified = eerr.categories[-1]
        assert unclassified.name == UNCLASSIFIED
        assert [row.item for row in unclassified.rows] == ["Terreno"]
        assert eerr.find_row(EBITDA_LABEL).get("Enero") == 1000

    def test_no_transactions(self):
        eerr = aggregate_period([], "2024-01")

        for category in eerr.categories:
            for row in category.rows:
                assert row.get("Enero") == 0
                assert row.get("Enero", Metric.PERCENT) == 0
            assert category.total is None or category.total.get("Enero") == 0
        assert eerr.find_row(EBITDA_LABEL).get("CONSOLIDADO") == 0

    def test_no_sales_leaves_percentages_at_zero(self):
        eerr = aggregate_period([tx("Sueldo Personal", 300_000)], "2024-01")

        assert eerr.find_row("Sueldo Personal").get("Enero", Metric.PERCENT) == 0
        assert eerr.find_row(EBITDA_LABEL).get("Enero") == -300_000

    def test_percentages_are_rounded(self):
        eerr = aggregate_period([tx("Ventas", 3_000_000), tx("Arriendo", 1_000_000)], "2024-01")
        assert eerr.find_row("Arriendo").get("Enero", Metric.PERCENT) == 33.33


class TestAggregatePeriods:
    """Test suite for the multi-period path."""

    @pytest.fixture
    def ledgers(self):
        return [
            PeriodLedger(periodo="2024-02", transactions=[tx("Ventas", 1000), tx("Arriendo", 100)]),
            PeriodLedger(periodo="2024-01", transactions=[tx("Ventas", 3000), tx("Arriendo", 300)]),
        ]

    def test_periods_sorted(self, ledgers):
        eerr = aggregate_periods(ledgers)

        assert eerr.months == ["Enero", "Febrero", "ANUAL"]
        assert eerr.month_to_period == {"Enero": "2024-01", "Febrero": "2024-02"}
        assert eerr.sheet_name == "Libro de Compras - 2024-01 a 2024-02"

    def test_anual_columns(self, ledgers):
        arriendo = aggregate_periods(ledgers).find_row("Arriendo")

        assert arriendo.get("Enero") == 300
        assert arriendo.get("ANUAL") == 400
        assert arriendo.get("ANUAL", Metric.AVERAGE) == 200
        assert arriendo.get("ANUAL", Metric.PERCENT) == pytest.approx(10)
        assert arriendo.get("Febrero", Metric.PERCENT) == pytest.approx(10)

    def test_ebitda_per_period(self, ledgers):
        ebitda = aggregate_periods(ledgers).find_row(EBITDA_LABEL)

        assert ebitda.get("Enero") == 2700
        assert ebitda.get("Febrero") == 900
        assert ebitda.get("ANUAL") == 3600

    def test_period_without_sales_keeps_zero_percent(self):
        eerr = aggregate_periods([
            PeriodLedger(periodo="2024-01", transactions=[tx("Arriendo", 10)]),
            PeriodLedger(periodo="2024-02", transactions=[tx("Ventas", 100), tx("Arriendo", 10)]),
        ])
        arriendo = eerr.find_row("Arriendo")

        assert arriendo.get("Enero", Metric.PERCENT) == 0
        assert arriendo.get("Febrero", Metric.PERCENT) == pytest.approx(10)

    def test_single_period_name(self):
        eerr = aggregate_periods([PeriodLedger(periodo="2024-05")])
        assert eerr.sheet_name == "Libro de Compras - 2024-05"

    def test_same_month_different_years(self):
        eerr = aggregate_periods([
            PeriodLedger(periodo="2025-11", transactions=[tx("Ventas", 1)]),
            PeriodLedger(periodo="2024-11", transactions=[tx("Ventas", 2)]),
        ])

        assert eerr.months == ["Noviembre 2024", "Noviembre 2025", "ANUAL"]
        assert eerr.find_row("Ventas").get("Noviembre 2025") == 1

    def test_repeated_period_is_merged(self):
        eerr = aggregate_periods([
            PeriodLedger(periodo="2024-01", transactions=[tx("Arriendo", 1)]),
            PeriodLedger(periodo="2024-01", transactions=[tx("Arriendo", 2)]),
        ])

        assert eerr.months == ["Enero", "ANUAL"]
        assert eerr.find_row("Arriendo").get("Enero") == 3


class TestPeriodMonthName:

    def test_names(self):
        assert period_month_name("2024-11") == "Noviembre"
        assert period_month_name("2024-01") == "Enero"

    def test_malformed(self):
        assert period_month_name("bad") == "bad"
        assert period_month_name("2024-13") == "2024-13"


class TestBranchStatement:
    """Test suite for build_branch_statement."""

    @pytest.fixture
    def ledger(self):
        return [
            tx("Ventas", 1000, unidad_negocio="Sevilla", encabezado=INGRESOS_OPERACIONALES, fecha_docto="2024-01-10"),
            tx("Arriendo", 100, unidad_negocio="Sevilla", encabezado="otros gastos", fecha_docto="2024-01-15"),
            tx("Arriendo", 200, unidad_negocio="sevilla", encabezado=OTROS_GASTOS, fecha_docto="2024-02-03"),
            tx("Caja Chica", 50, unidad_negocio="Sevilla", fecha_docto="2024-02-05"),
            tx("Ventas", 5000, unidad_negocio="Sevilla", encabezado=INGRESOS_OPERACIONALES),
            tx("Arriendo", 999, unidad_negocio="Labranza", encabezado=OTROS_GASTOS, fecha_docto="2024-01-01"),
            tx("Arriendo", 300, razon_social="Comercial Sevilla SpA", encabezado=OTROS_GASTOS, fecha_docto="20-02-2024"),
        ]

    def test_months_and_categories(self, ledger):
        eerr = build_branch_statement(ledger, "Sevilla")

        assert eerr.sheet_name == "Sevilla"
        assert eerr.months == ["ENERO", "FEBRERO", "ANUAL"]
        assert [c.name for c in eerr.categories] == [INGRESOS_OPERACIONALES, OTROS_GASTOS, UNCLASSIFIED]

    def test_amounts(self, ledger):
        eerr = build_branch_statement(ledger, "Sevilla")
        arriendo = eerr.find_row("Arriendo")

        assert arriendo.get("ENERO") == 100
        assert arriendo.get("FEBRERO") == 500
        assert arriendo.get("ANUAL") == 600
        assert arriendo.get("ANUAL", Metric.AVERAGE) == 300
        assert eerr.find_row("Ventas").get("ANUAL") == 1000
        assert eerr.find_category(OTROS_GASTOS).total.item == "TOTAL OTROS GASTOS"

    def test_percentages_against_income(self, ledger):
        arriendo = build_branch_statement(ledger, "Sevilla").find_row("Arriendo")

        assert arriendo.get("ENERO", Metric.PERCENT) == 10.0
        assert arriendo.get("FEBRERO", Metric.PERCENT) == 0
        assert arriendo.get("ANUAL", Metric.PERCENT) == 60.0

    def test_no_matching_lines(self, ledger):
        assert build_branch_statement(ledger, "Temuco") is None
        assert build_branch_statement([], "Sevilla") is None
