"""BISM EERR - Shared utilities"""
from bism.utils.values import parse_value, parse_date, format_number, format_percentage
