"""
BISM EERR - Libro de Compras Aggregator
Folds purchase-ledger transactions into income statements (EERR) with
gross margin, EBITDA, net result and percentage-of-sales columns.
"""
import logging
from collections import Counter, OrderedDict
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from bism.constants import (
    ANUAL,
    BONIFICACION_POR_TRAMO,
    CONSOLIDADO,
    COSTO_DE_VENTA,
    EBITDA_LABEL,
    EERR_HEADINGS,
    GASTOS_DE_ADMINISTRACION,
    GASTOS_DE_OPERACION,
    GASTOS_DE_REMUNERACION,
    GROSS_MARGIN_LABEL,
    INGRESOS_OPERACIONALES,
    MONTH_NAMES,
    NET_RESULT_LABEL,
    OPERATING_EXPENSE_HEADINGS,
    OTROS_EGRESOS,
    OTROS_GASTOS,
    TOTAL_PREFIX,
    TRANSBANK,
    UNCLASSIFIED,
    VENTAS,
)
from bism.models.schemas import (
    EERRCategory,
    EERRData,
    EERRRow,
    LedgerTransaction,
    Metric,
    PeriodLedger,
)
from bism.services.classifier import accounts_for_heading, classify

logger = logging.getLogger(__name__)

# Statement layout: headings with their predefined accounts, in display order.
# Calculated sections hold a single computed row.
ESTRUCTURA_EERR = [
    {
        "name": INGRESOS_OPERACIONALES,
        "items": [VENTAS, COSTO_DE_VENTA, TRANSBANK, BONIFICACION_POR_TRAMO],
        "gross_margin": True,
    },
    {
        "name": GASTOS_DE_REMUNERACION,
        "items": [
            "Sueldo Personal",
            "Seguro de Cesantia",
            "Seguro de Accidentes Trabajo",
            "Seguro Invalidez y Sobrevivencia",
            "Finiquitos",
            "Honorarios BH",
            "Honorarios Factura BSM",
            "Provision de Vacaciones",
        ],
    },
    {
        "name": GASTOS_DE_OPERACION,
        "items": [
            "Consumo de Electricidad",
            "Consumo de Agua",
            "Comunicaciones",
            "Articulos de Aseo",
            "Mantencion y Reparacion",
            "Gastos Generales",
            "Servicios Externos",
            "Caja Chica",
        ],
    },
    {
        "name": GASTOS_DE_ADMINISTRACION,
        "items": [
            "Materiales y Utiles de Oficina",
            "Publicidad y Propaganda BSM",
            "Licencias y Software",
            "Gastos Notariales",
            "Gastos Bancarios",
            "Contribuciones",
            "Patentes Municipales",
            "Gastos generales",
            "Recaudacion y Sencillo",
            "Seguros",
        ],
    },
    {
        "name": OTROS_GASTOS,
        "items": ["Arriendo", "Gestion BSM", "Supervisor punto de venta (S.M)"],
    },
    {"name": EBITDA_LABEL, "items": [], "calculated": True},
    {
        "name": OTROS_EGRESOS,
        "items": ["Pago Cuota Leasing", "Pago Cuota creditos Bancarios", "Directorio"],
    },
    {"name": NET_RESULT_LABEL, "items": [], "calculated": True},
]

DEFAULT_ACCOUNT = "Sin Clasificar"

_CANONICAL_HEADINGS = {heading: heading for heading in EERR_HEADINGS}


def canonical_heading(heading: Optional[str]) -> str:
    """Map a heading (any casing/spacing) to one of the six fixed headings, else SIN CLASIFICAR."""
    if not heading:
        return UNCLASSIFIED
    normalized = " ".join(heading.upper().split())
    return _CANONICAL_HEADINGS.get(normalized, UNCLASSIFIED)


def period_month_name(periodo: str) -> str:
    """'2024-11' -> 'Noviembre'. Malformed periods are returned unchanged."""
    try:
        month = int(periodo.split("-")[1])
    except (IndexError, ValueError):
        return periodo
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return periodo


def _normalize(name: str) -> str:
    return name.strip().lower()


_TEMPLATE_KEYS = Counter(
    _normalize(item) for section in ESTRUCTURA_EERR for item in section["items"]
)


def _matches_item(account: str, item: str) -> bool:
    """Case-insensitive match, exact when two template rows differ only by case."""
    if _TEMPLATE_KEYS[_normalize(item)] > 1:
        return account.strip() == item
    return _normalize(account) == _normalize(item)


def _group_by_account(transactions: Iterable[LedgerTransaction]) -> "OrderedDict[str, float]":
    """Sum montoNeto per account name, keeping first-seen order."""
    amounts: "OrderedDict[str, float]" = OrderedDict()
    for tx in transactions:
        account = (tx.cuenta or DEFAULT_ACCOUNT).strip() or DEFAULT_ACCOUNT
        amounts[account] = amounts.get(account, 0.0) + (tx.monto_neto or 0.0)
    return amounts


class _Column(NamedTuple):
    """One period column being aggregated."""
    label: str
    periodo: str
    amounts: Dict[str, float]
    manual_values: Dict[str, float]


def _fill_summary(row: EERRRow, months: Sequence[str], summary: str, round_to: Optional[int]) -> EERRRow:
    total = sum(row.get(month) for month in months)
    average = total / len(months) if months else 0.0
    row.set(summary, Metric.AMOUNT, total)
    row.set(summary, Metric.PERCENT, 0.0)
    row.set(summary, Metric.AVERAGE, round(average, round_to) if round_to is not None else average)
    return row


def _new_row(item: str, monthly: Dict[str, float], months: Sequence[str], summary: str,
             round_to: Optional[int]) -> EERRRow:
    row = EERRRow(item=item)
    for month in months:
        row.set(month, Metric.AMOUNT, monthly.get(month, 0.0))
        row.set(month, Metric.PERCENT, 0.0)
    return _fill_summary(row, months, summary, round_to)


def _sum_rows(item: str, rows: Sequence[EERRRow], months: Sequence[str], summary: str,
              round_to: Optional[int]) -> EERRRow:
    monthly = {month: sum(row.get(month) for row in rows) for month in months}
    return _new_row(item, monthly, months, summary, round_to)


def _total_amount(category: Optional[EERRCategory], month: str) -> float:
    if category is None or category.total is None:
        return 0.0
    return category.total.get(month)


def _build_statement(columns: List[_Column], summary: str, round_to: Optional[int],
                     account_headings: Dict[str, Optional[str]]) -> List[EERRCategory]:
    months = [column.label for column in columns]

    # Every distinct account across periods, in first-seen order
    all_accounts: List[str] = []
    seen = set()
    for column in columns:
        for account in column.amounts:
            if account not in seen:
                seen.add(account)
                all_accounts.append(account)

    template_items = [item for section in ESTRUCTURA_EERR for item in section["items"]]
    consumed = {
        account for account in all_accounts
        if any(_matches_item(account, item) for item in template_items)
    }

    # Accounts left over after the predefined rows, grouped by heading
    extra_by_heading: Dict[str, List[str]] = {}
    for account in all_accounts:
        if account in consumed:
            continue
        heading = canonical_heading(classify(account, account_headings.get(account)))
        extra_by_heading.setdefault(heading, []).append(account)

    categories: List[EERRCategory] = []
    for section in ESTRUCTURA_EERR:
        name = section["name"]
        if section.get("calculated"):
            categories.append(EERRCategory(name=name))
            continue

        rows: List[EERRRow] = []
        for item in section["items"]:
            monthly = {}
            for column in columns:
                amount = column.manual_values.get(item) or 0.0
                if amount == 0:
                    amount = sum(
                        value for account, value in column.amounts.items()
                        if _matches_item(account, item)
                    )
                monthly[column.label] = amount
            rows.append(_new_row(item, monthly, months, summary, round_to))

        for account in extra_by_heading.get(name, []):
            monthly = {column.label: column.amounts.get(account, 0.0) for column in columns}
            rows.append(_new_row(account, monthly, months, summary, round_to))

        if section.get("gross_margin"):
            total = _gross_margin_row(rows, months, summary, round_to)
        else:
            total = _sum_rows(f"{TOTAL_PREFIX}{name}", rows, months, summary, round_to)

        categories.append(EERRCategory(name=name, rows=rows, total=total))

    unclassified = extra_by_heading.get(UNCLASSIFIED, [])
    if unclassified:
        rows = []
        for account in unclassified:
            monthly = {column.label: column.amounts.get(account, 0.0) for column in columns}
            rows.append(_new_row(account, monthly, months, summary, round_to))
        total = _sum_rows(f"{TOTAL_PREFIX}{UNCLASSIFIED}", rows, months, summary, round_to)
        categories.append(EERRCategory(name=UNCLASSIFIED, rows=rows, total=total))
        logger.info(f"{len(rows)} account(s) without a known heading grouped under {UNCLASSIFIED}")

    _fill_results(categories, months, summary, round_to)
    _fill_percentages(categories, months + [summary], round_to)
    return categories


def _gross_margin_row(rows: Sequence[EERRRow], months: Sequence[str], summary: str,
                      round_to: Optional[int]) -> EERRRow:
    """MARGEN BRUTO OPERACIONAL = Ventas - Costo de venta + Bonificacion por tramo - Transbank."""
    by_item = {}
    for row in rows:
        by_item.setdefault(row.item, row)

    def amount(item: str, month: str) -> float:
        row = by_item.get(item)
        return row.get(month) if row is not None else 0.0

    monthly = {
        month: (
            amount(VENTAS, month)
            - amount(COSTO_DE_VENTA, month)
            + amount(BONIFICACION_POR_TRAMO, month)
            - amount(TRANSBANK, month)
        )
        for month in months
    }
    return _new_row(GROSS_MARGIN_LABEL, monthly, months, summary, round_to)


def _fill_results(categories: List[EERRCategory], months: Sequence[str], summary: str,
                  round_to: Optional[int]) -> None:
    """Compute the EBIDTA and RESULTADO NETO rows from the category totals."""
    by_name = {category.name: category for category in categories}
    income = by_name.get(INGRESOS_OPERACIONALES)
    expenses = [by_name.get(name) for name in OPERATING_EXPENSE_HEADINGS]
    non_operating = by_name.get(OTROS_EGRESOS)

    ebitda = {
        month: _total_amount(income, month) - sum(_total_amount(category, month) for category in expenses)
        for month in months
    }
    net = {month: ebitda[month] - _total_amount(non_operating, month) for month in months}

    ebitda_category = by_name.get(EBITDA_LABEL)
    if ebitda_category is not None:
        ebitda_category.rows = [_new_row(EBITDA_LABEL, ebitda, months, summary, round_to)]

    net_category = by_name.get(NET_RESULT_LABEL)
    if net_category is not None:
        net_category.rows = [_new_row(NET_RESULT_LABEL, net, months, summary, round_to)]


def _fill_percentages(categories: List[EERRCategory], columns: Sequence[str], round_to: Optional[int]) -> None:
    """Second pass: every amount as a percentage of Ventas, per column. Columns without sales stay at 0."""
    ventas_row = None
    for category in categories:
        for row in category.rows:
            if row.item == VENTAS:
                ventas_row = row
                break
        if ventas_row is not None:
            break
    if ventas_row is None:
        return

    for column in columns:
        ventas = ventas_row.get(column)
        if ventas <= 0:
            continue
        for category in categories:
            targets = list(category.rows)
            if category.total is not None:
                targets.append(category.total)
            for row in targets:
                if not row.has(column):
                    continue
                percent = row.get(column) / ventas * 100
                row.set(column, Metric.PERCENT, round(percent, round_to) if round_to is not None else percent)


def _headings_by_account(transactions: Iterable[LedgerTransaction], into: Dict[str, Optional[str]]) -> None:
    """First non-empty manual heading seen for each account."""
    for tx in transactions:
        account = (tx.cuenta or DEFAULT_ACCOUNT).strip() or DEFAULT_ACCOUNT
        if tx.encabezado and not into.get(account):
            into[account] = tx.encabezado


def aggregate_period(
    transactions: Sequence[LedgerTransaction],
    periodo: str,
    manual_values: Optional[Dict[str, float]] = None,
) -> EERRData:
    """
    Build the EERR of a single period (YYYY-MM).

    Columns are the period's month plus CONSOLIDADO. All ledger lines are taken
    as belonging to the period; document dates are not used for filtering.
    Percentages are rounded to two decimals.

    Args:
        transactions: Ledger lines of the period
        periodo: Period in YYYY-MM format
        manual_values: Amounts entered by hand per account (e.g. Ventas)

    Returns:
        EERRData with the predefined structure plus classified ledger accounts
    """
    month = period_month_name(periodo)
    column = _Column(month, periodo, _group_by_account(transactions), dict(manual_values or {}))

    headings: Dict[str, Optional[str]] = {}
    _headings_by_account(transactions, headings)

    categories = _build_statement([column], CONSOLIDADO, 2, headings)
    logger.debug(f"Aggregated {len(transactions)} ledger lines for {periodo}")

    return EERRData(
        sheet_name=f"Libro de Compras - {periodo}",
        months=[month, CONSOLIDADO],
        categories=categories,
        month_to_period={month: periodo},
    )


def _merge_ledgers(ledgers: Sequence[PeriodLedger]) -> List[PeriodLedger]:
    """One ledger per period, chronologically. Repeated periods are concatenated."""
    merged: Dict[str, PeriodLedger] = {}
    for ledger in ledgers:
        existing = merged.get(ledger.periodo)
        if existing is None:
            merged[ledger.periodo] = PeriodLedger(
                periodo=ledger.periodo,
                transactions=list(ledger.transactions),
                manual_values=dict(ledger.manual_values),
            )
        else:
            existing.transactions.extend(ledger.transactions)
            existing.manual_values.update(ledger.manual_values)
    return [merged[periodo] for periodo in sorted(merged)]


def aggregate_periods(ledgers: Sequence[PeriodLedger]) -> EERRData:
    """
    Build a multi-period EERR: one Monto/% column pair per period plus ANUAL.

    ANUAL Monto is the sum over periods and ANUAL Promedio the mean per period.
    When two periods share a month name (different years) the year is appended
    to the column label.
    """
    ordered = _merge_ledgers(ledgers)

    names = [period_month_name(ledger.periodo) for ledger in ordered]
    if len(set(names)) != len(names):
        names = [f"{name} {ledger.periodo[:4]}" for name, ledger in zip(names, ordered)]

    columns = []
    headings: Dict[str, Optional[str]] = {}
    for name, ledger in zip(names, ordered):
        columns.append(_Column(name, ledger.periodo, _group_by_account(ledger.transactions), ledger.manual_values))
        _headings_by_account(ledger.transactions, headings)

    categories = _build_statement(columns, ANUAL, None, headings)

    if not ordered:
        sheet_name = "Libro de Compras"
    elif len(ordered) == 1:
        sheet_name = f"Libro de Compras - {ordered[0].periodo}"
    else:
        sheet_name = f"Libro de Compras - {ordered[0].periodo} a {ordered[-1].periodo}"

    return EERRData(
        sheet_name=sheet_name,
        months=names + [ANUAL],
        categories=categories,
        month_to_period={column.label: column.periodo for column in columns},
    )


# ============================================
# Branch statement (document-date bucketing)
# ============================================

def _belongs_to_branch(tx: LedgerTransaction, sucursal: str) -> bool:
    branch = sucursal.lower()
    return tx.unidad_negocio.lower() == branch or branch in tx.razon_social.lower()


def build_branch_statement(transactions: Sequence[LedgerTransaction], sucursal: str) -> Optional[EERRData]:
    """
    Generate a branch EERR straight from ledger lines.

    Lines are filtered by business unit (or supplier name containing the
    branch), bucketed into months by document date and grouped by their
    manual heading; lines without a heading fall under SIN CLASIFICAR.
    Percentages are against the month's INGRESOS OPERACIONALES, rounded to
    two decimals.

    Returns None when no line belongs to the branch.
    """
    if not transactions:
        logger.warning(f"No ledger lines to build the {sucursal} statement")
        return None

    branch_lines = [tx for tx in transactions if _belongs_to_branch(tx, sucursal)]
    if not branch_lines:
        logger.warning(f"No ledger lines for branch {sucursal}")
        return None

    # heading -> account -> month -> amount
    grouped: Dict[str, Dict[str, Dict[str, float]]] = {}
    month_numbers = set()
    skipped = 0
    for tx in branch_lines:
        if tx.fecha_docto is None:
            skipped += 1
            continue
        month = MONTH_NAMES[tx.fecha_docto.month - 1].upper()
        month_numbers.add(tx.fecha_docto.month)

        heading = canonical_heading(tx.encabezado)
        account = tx.cuenta or "Sin cuenta"

        by_month = grouped.setdefault(heading, {}).setdefault(account, {})
        by_month[month] = by_month.get(month, 0.0) + (tx.monto_neto or 0.0)

    if skipped:
        logger.info(f"{skipped} ledger line(s) of {sucursal} skipped: no document date")

    months = [MONTH_NAMES[number - 1].upper() for number in sorted(month_numbers)]

    income = {month: 0.0 for month in months}
    for by_account in grouped.get(INGRESOS_OPERACIONALES, {}).values():
        for month, amount in by_account.items():
            income[month] += amount

    categories: List[EERRCategory] = []
    for heading in EERR_HEADINGS + [UNCLASSIFIED]:
        by_account = grouped.get(heading)
        if not by_account:
            continue

        expected = [account for account in accounts_for_heading(heading) if account in by_account]
        ordered_accounts = expected + [account for account in by_account if account not in expected]

        rows = [_new_row(account, by_account[account], months, ANUAL, 2) for account in ordered_accounts]
        total = _sum_rows(f"{TOTAL_PREFIX}{heading}", rows, months, ANUAL, 2)
        categories.append(EERRCategory(name=heading, rows=rows, total=total))

    annual_income = sum(income.values())
    for category in categories:
        for row in category.rows + [category.total]:
            for month in months:
                if income[month] > 0:
                    row.set(month, Metric.PERCENT, round(row.get(month) / income[month] * 100, 2))
            if annual_income > 0:
                row.set(ANUAL, Metric.PERCENT, round(row.get(ANUAL) / annual_income * 100, 2))

    return EERRData(
        sheet_name=sucursal,
        months=months + [ANUAL],
        categories=categories,
    )
