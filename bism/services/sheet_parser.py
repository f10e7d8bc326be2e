"""
BISM EERR - Sheet Parser
Reconstructs statement sections from raw spreadsheet grids.

Two layouts are supported:
- Legacy "Consolidado" sheet: Labranza / Sevilla / Consolidados blocks, each with
  its own month header, sub-header (Monto / % / Promedio) and flat item rows.
- EERR sheet (one per branch): a single month header followed by categories
  opened by a heading row and closed by their TOTAL row.

Grids are lists of rows of cell values, as read with header=None; no Excel
library is needed here.
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from bism.config import get_settings
from bism.constants import (
    EBITDA_LABEL,
    EERR_HEADINGS,
    FINAL_RESULT_CATEGORY,
    GASTOS_DE_ADMINISTRACION,
    GROSS_MARGIN_LABEL,
    NET_RESULT_LABEL,
    TOTAL_PREFIX,
)
from bism.models.schemas import ColumnKey, EERRCategory, EERRData, EERRRow, ExcelSection, Metric
from bism.utils.values import parse_value

logger = logging.getLogger(__name__)

Grid = Sequence[Sequence[Any]]

# Section marker keyword -> section name
SECTION_MARKERS = [
    ("labranza", "Labranza"),
    ("sevilla", "Sevilla"),
    ("consolidado", "Consolidados"),
]

# Heading aliases seen in older workbooks
HEADING_ALIASES = {
    "GASTOS GENERALES DE ADMINISTRACION": GASTOS_DE_ADMINISTRACION,
}

_OPENING_HEADINGS = set(EERR_HEADINGS) | set(HEADING_ALIASES)
_EBITDA_LABELS = {EBITDA_LABEL, "EBITDA"}


class ScannerState(str, Enum):
    SEEKING_SECTION = "seeking_section"
    SEEKING_HEADER = "seeking_header"
    READING_ROWS = "reading_rows"


def _cell_text(cell: Any) -> str:
    if cell is None:
        return ""
    if isinstance(cell, float) and cell != cell:  # NaN
        return ""
    return str(cell).strip()


def _row_text(row: Sequence[Any]) -> str:
    return " ".join(_cell_text(cell) for cell in row).lower()


def _normalize_label(text: str) -> str:
    return " ".join(text.upper().split())


def _is_month_header(row: Sequence[Any]) -> bool:
    text = _row_text(row)
    return "enero" in text and "febrero" in text


def _metric_for(sub_header: str) -> Optional[Metric]:
    text = sub_header.lower()
    if "monto" in text:
        return Metric.AMOUNT
    if "%" in text:
        return Metric.PERCENT
    if "promedio" in text:
        return Metric.AVERAGE
    return None


def build_column_map(
    header_row: Sequence[Any],
    sub_header_row: Sequence[Any],
    upper: bool = False,
) -> Dict[ColumnKey, int]:
    """
    Map (month, metric) to the column index holding it.

    Month cells are usually merged over their Monto / % columns, so a month
    label carries forward until the next non-empty header cell. Columns whose
    sub-header is not Monto, % or Promedio are dropped. Column 0 holds the
    item labels and is never mapped.
    """
    column_map: Dict[ColumnKey, int] = {}
    current_month = ""
    for index in range(1, len(header_row)):
        month = _cell_text(header_row[index])
        if month:
            current_month = month.upper() if upper else month
        if not current_month:
            continue

        sub_header = _cell_text(sub_header_row[index]) if index < len(sub_header_row) else ""
        metric = _metric_for(sub_header)
        if metric is None:
            continue

        key = ColumnKey(current_month, metric)
        if key not in column_map:
            column_map[key] = index
    return column_map


def _months_of(column_map: Dict[ColumnKey, int]) -> List[str]:
    months: List[str] = []
    for key in column_map:
        if key.month not in months:
            months.append(key.month)
    return months


def _read_row(item: str, row: Sequence[Any], column_map: Dict[ColumnKey, int]) -> EERRRow:
    columns = {}
    for key, index in column_map.items():
        if index < len(row):
            columns[key] = parse_value(row[index])
    return EERRRow(item=item, columns=columns)


# ============================================
# Legacy Consolidado sheet
# ============================================

def _section_marker(row: Sequence[Any]) -> Optional[str]:
    text = _row_text(row)
    if "item" in text or _is_month_header(row):
        return None
    for keyword, name in SECTION_MARKERS:
        if keyword in text:
            return name
    return None


def parse_consolidado_grid(grid: Grid) -> Optional[List[ExcelSection]]:
    """
    Parse the legacy Consolidado sheet into its Labranza / Sevilla / Consolidados sections.

    Each section has its own month header; data starts two rows below it
    (after the Monto / % sub-header) and ends at the first row with an empty
    first cell or at the next section marker. Sections without data rows are
    dropped.

    Returns:
        The sections found, or None when the sheet holds none
    """
    sections: List[ExcelSection] = []
    state = ScannerState.SEEKING_SECTION
    current: Optional[ExcelSection] = None
    column_map: Dict[ColumnKey, int] = {}
    skip_until = -1

    def close_section() -> None:
        if current is not None and current.rows:
            sections.append(current)

    for index, row in enumerate(grid):
        if index < skip_until:
            continue

        marker = _section_marker(row)
        if marker is not None:
            close_section()
            current = ExcelSection(name=marker)
            column_map = {}
            state = ScannerState.SEEKING_HEADER
            continue

        if state == ScannerState.SEEKING_HEADER:
            if _is_month_header(row):
                sub_header = grid[index + 1] if index + 1 < len(grid) else []
                column_map = build_column_map(row, sub_header)
                skip_until = index + 2
                state = ScannerState.READING_ROWS

        elif state == ScannerState.READING_ROWS:
            item = _cell_text(row[0]) if len(row) else ""
            if not item:
                close_section()
                current = None
                state = ScannerState.SEEKING_SECTION
                continue
            current.rows.append(_read_row(item, row, column_map))

    if state == ScannerState.READING_ROWS:
        close_section()

    if not sections:
        logger.warning("No sections found in Consolidado sheet")
        return None

    logger.debug(f"Parsed {len(sections)} Consolidado section(s): {[s.name for s in sections]}")
    return sections


# ============================================
# EERR sheet
# ============================================

def _find_month_row(grid: Grid, scan_rows: int) -> Optional[int]:
    for index in range(min(scan_rows, len(grid))):
        if _is_month_header(grid[index]):
            return index
    return None


def parse_eerr_grid(grid: Grid, sheet_name: str) -> Optional[EERRData]:
    """
    Parse a per-branch EERR sheet into categories.

    The month row (ENERO ... FEBRERO ...) must appear within the first rows
    of the sheet; month labels are upper-cased. A heading row opens a
    category, a TOTAL or MARGEN BRUTO OPERACIONAL row closes it as its total.
    EBIDTA and RESULTADO NETO rows become one-row categories of their own.
    Rows outside any category are dropped.

    Returns:
        EERRData, or None when the month row is not found
    """
    settings = get_settings()
    month_row = _find_month_row(grid, settings.eerr_header_scan_rows)
    if month_row is None:
        logger.error(f"No month row found in sheet {sheet_name}")
        return None

    sub_header = grid[month_row + 1] if month_row + 1 < len(grid) else []
    column_map = build_column_map(grid[month_row], sub_header, upper=True)

    categories: List[EERRCategory] = []
    current: Optional[EERRCategory] = None

    def push_open() -> None:
        if current is not None and current.rows:
            categories.append(current)

    for row in grid[month_row + 1:]:
        if not len(row):
            continue
        item = _cell_text(row[0])
        if not item:
            continue
        label = _normalize_label(item)

        if label.startswith(GROSS_MARGIN_LABEL) or label.startswith(TOTAL_PREFIX):
            if current is not None:
                current.total = _read_row(item, row, column_map)
                categories.append(current)
                current = None
            continue

        if label in _EBITDA_LABELS:
            push_open()
            current = None
            categories.append(EERRCategory(name=item, rows=[_read_row(item, row, column_map)]))
            continue

        if label in _OPENING_HEADINGS:
            push_open()
            current = EERRCategory(name=item)
            continue

        if label.startswith(NET_RESULT_LABEL):
            push_open()
            current = None
            categories.append(
                EERRCategory(name=FINAL_RESULT_CATEGORY, rows=[_read_row(item, row, column_map)])
            )
            continue

        if current is not None:
            current.rows.append(_read_row(item, row, column_map))

    push_open()

    months = _months_of(column_map)
    logger.debug(f"Parsed sheet {sheet_name}: {len(months)} months, {len(categories)} categories")
    return EERRData(sheet_name=sheet_name, months=months, categories=categories)
