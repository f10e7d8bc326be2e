"""
BISM EERR - Consolidation
Flattens categorized statements into table rows and sums two branch tables
into the consolidated one.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from bism.models.schemas import EERRData
from bism.utils.values import parse_value

logger = logging.getLogger(__name__)

ExcelRow = Dict[str, Any]

ITEM_KEY = "Item"


def flatten_statement(eerr: Optional[EERRData]) -> List[ExcelRow]:
    """Category rows followed by the category total, in statement order."""
    if eerr is None:
        return []

    rows: List[ExcelRow] = []
    for category in eerr.categories:
        rows.extend(row.to_excel_row() for row in category.rows)
        if category.total is not None:
            rows.append(category.total.to_excel_row())
    return rows


def _index_by_item(table: Sequence[ExcelRow]) -> Dict[str, ExcelRow]:
    indexed: Dict[str, ExcelRow] = {}
    for row in table:
        indexed[str(row.get(ITEM_KEY, ""))] = row
    return indexed


def _average_percent(a: float, b: float) -> float:
    """Average of the positive sides; a single positive side is used as is."""
    if a > 0 and b > 0:
        return (a + b) / 2
    if a > 0:
        return a
    if b > 0:
        return b
    return 0.0


def sum_tables(table_a: Sequence[ExcelRow], table_b: Sequence[ExcelRow]) -> List[ExcelRow]:
    """
    Sum two flat tables row by row, matching rows on their Item label.

    The result holds every Item of either table, in first-seen order (table A
    first). Percentage columns are averaged instead of summed; all other
    columns are added. Missing or non-numeric cells count as 0. When a table
    repeats an Item the last occurrence is used.

    Args:
        table_a: Rows of the first branch (e.g. Labranza)
        table_b: Rows of the second branch (e.g. Sevilla)

    Returns:
        Consolidated rows
    """
    rows_a = _index_by_item(table_a)
    rows_b = _index_by_item(table_b)

    items = list(rows_a)
    items.extend(item for item in rows_b if item not in rows_a)

    result: List[ExcelRow] = []
    for item in items:
        row_a = rows_a.get(item, {})
        row_b = rows_b.get(item, {})

        columns = [key for key in row_a if key != ITEM_KEY]
        columns.extend(key for key in row_b if key != ITEM_KEY and key not in row_a)

        summed: ExcelRow = {ITEM_KEY: item}
        for column in columns:
            value_a = parse_value(row_a.get(column))
            value_b = parse_value(row_b.get(column))
            if "%" in column:
                summed[column] = _average_percent(value_a, value_b)
            else:
                summed[column] = value_a + value_b
        result.append(summed)

    logger.debug(f"Summed tables: {len(table_a)} + {len(table_b)} rows -> {len(result)}")
    return result


def consolidate_statements(eerr_a: Optional[EERRData], eerr_b: Optional[EERRData]) -> List[ExcelRow]:
    """Consolidated table of two branch statements."""
    return sum_tables(flatten_statement(eerr_a), flatten_statement(eerr_b))
