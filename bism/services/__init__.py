"""BISM EERR - Services Package"""
from bism.services.classifier import classify, accounts_for_heading
from bism.services.sheet_parser import parse_consolidado_grid, parse_eerr_grid, build_column_map
from bism.services.aggregator import aggregate_period, aggregate_periods, build_branch_statement, period_month_name
from bism.services.consolidation import flatten_statement, sum_tables, consolidate_statements
from bism.services.workbook import WorkbookService, WorkbookGrids, WorkbookError
