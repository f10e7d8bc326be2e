"""BISM EERR - Models Package"""
from bism.models.schemas import (
    Metric,
    ColumnKey,
    EERRRow,
    EERRCategory,
    EERRData,
    ExcelSection,
    LedgerTransaction,
    PeriodLedger,
    SupplierClassification,
    UploadResult,
)
