import argparse
import logging
import os
import sys

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bism.logging_config import configure_logging
from bism.models.schemas import Metric
from bism.services.aggregator import build_branch_statement
from bism.services.consolidation import flatten_statement
from bism.services.workbook import WorkbookError, WorkbookService
from bism.utils import format_number, format_percentage

logger = logging.getLogger("inspect_workbook")


def print_statement(eerr):
    print(f"\n  >> {eerr.sheet_name}: months {eerr.months}")
    for category in eerr.categories:
        print(f"     [{category.name}]")
        rows = category.rows + ([category.total] if category.total is not None else [])
        for row in rows:
            cells = []
            for month in eerr.months:
                cells.append(f"{format_number(row.get(month))} ({format_percentage(row.get(month, Metric.PERCENT))})")
            print(f"       {row.item:<40} {' | '.join(cells)}")


def inspect(path: str, sheets: list):
    service = WorkbookService()
    with open(path, "rb") as f:
        content = f.read()

    print(f"\n--- Analyzing file: {os.path.basename(path)} ---")
    try:
        workbook = service.load(content, os.path.basename(path))
    except WorkbookError as e:
        logger.error(f"Error reading {path}: {e}")
        return 1
    print(f"Sheets found: {workbook.sheet_names}")

    sections = service.parse_consolidado(workbook) or []
    for section in sections:
        print(f"\n  >> Consolidado section {section.name}: {len(section.rows)} rows")

    for sheet in sheets:
        eerr = service.parse_eerr(workbook, sheet)
        if eerr is not None:
            print_statement(eerr)

    transactions = service.parse_libro_compras(workbook) or []
    print(f"\nLedger transactions: {len(transactions)}")
    for branch in service.settings.branches:
        eerr = build_branch_statement(transactions, branch)
        if eerr is not None:
            print_statement(eerr)
            print(f"     {len(flatten_statement(eerr))} flat rows")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print the sheets and parsed statements of a BISM workbook")
    parser.add_argument("path", help="Workbook (.xlsx or .xls)")
    parser.add_argument("--sheet", action="append", default=[], help="EERR sheet to parse (repeatable)")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else None, verbose=args.verbose)
    sys.exit(inspect(args.path, args.sheet))
