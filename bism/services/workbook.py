"""
BISM EERR - Workbook Service
Reads uploaded Excel workbooks into raw grids and typed records.
"""
import logging
from io import BytesIO
from typing import Any, Dict, List, Optional

import pandas as pd

from bism.config import get_settings
from bism.models.schemas import (
    EERRData,
    ExcelSection,
    LedgerTransaction,
    SupplierClassification,
    UploadResult,
)
from bism.services.aggregator import build_branch_statement
from bism.services.sheet_parser import parse_consolidado_grid, parse_eerr_grid

logger = logging.getLogger(__name__)

Grid = List[List[Any]]


def _text(value: Any) -> str:
    """Cell as stripped text; None and NaN are empty."""
    if value is None:
        return ""
    if isinstance(value, float) and value != value:
        return ""
    return str(value).strip()


class WorkbookError(Exception):
    """Raised when an uploaded workbook cannot be read or lacks a required sheet."""
    pass


class WorkbookGrids:
    """Every sheet of a workbook as a raw grid, in workbook order."""

    def __init__(self, filename: str, sheets: Dict[str, Grid]):
        self.filename = filename
        self.sheets = sheets

    @property
    def sheet_names(self) -> List[str]:
        return list(self.sheets)

    def find_sheet(self, *names: str) -> Optional[str]:
        """First sheet whose name matches one of the given names, ignoring case."""
        by_lower = {name.strip().lower(): name for name in self.sheets}
        for name in names:
            found = by_lower.get(name.strip().lower())
            if found is not None:
                return found
        return None

    def find_sheet_containing(self, fragment: str) -> Optional[str]:
        fragment = fragment.strip().lower()
        if not fragment:
            return None
        for name in self.sheets:
            if fragment in name.lower():
                return name
        return None

    def grid(self, sheet_name: str) -> Grid:
        return self.sheets[sheet_name]


class WorkbookService:
    """
    Service for uploaded BISM workbooks.
    Loads every sheet once and hands raw grids to the sheet parsers.
    """

    CONSOLIDADO_SHEETS = ("Consolidado", "Consolidados")
    CLASIFICACION_SHEETS = ("CLASIFICACIÓN", "CLASIFICACION")

    # Positional columns of the SII purchase ledger export (LC sheet)
    LEDGER_COLUMNS = {
        "nro": 0,
        "tipo_doc": 1,
        "tipo_compra": 2,
        "rut_proveedor": 3,
        "razon_social": 4,
        "unidad_negocio": 5,
        "cuenta": 6,
        "folio": 7,
        "fecha_docto": 8,
        "monto_exento": 11,
        "monto_neto": 12,
        "monto_iva_recuperable": 13,
        "monto_total": 16,
    }

    def __init__(self):
        self.settings = get_settings()

    def load(self, file_content: bytes, filename: str) -> WorkbookGrids:
        """
        Read all sheets of an Excel file without assuming a header row.

        Raises:
            WorkbookError: Unsupported extension, oversized or unreadable file
        """
        max_bytes = self.settings.max_upload_size_mb * 1024 * 1024
        if len(file_content) > max_bytes:
            raise WorkbookError(
                f"File {filename} exceeds the {self.settings.max_upload_size_mb} MB upload limit"
            )

        lower_name = filename.lower()
        if lower_name.endswith(".xlsx"):
            engine = "openpyxl"
        elif lower_name.endswith(".xls"):
            engine = "xlrd"
        else:
            raise WorkbookError(f"Unsupported file format: {filename}. Expected .xlsx or .xls")

        try:
            frames = pd.read_excel(BytesIO(file_content), sheet_name=None, header=None, engine=engine)
        except Exception as e:
            raise WorkbookError(f"Failed to open file {filename}: {str(e)}") from e

        sheets = {str(name): self._to_grid(df) for name, df in frames.items()}
        logger.info(f"Loaded {filename}: sheets {list(sheets)}")
        return WorkbookGrids(filename, sheets)

    @staticmethod
    def _to_grid(df: pd.DataFrame) -> Grid:
        """DataFrame to list of rows, empty cells as ''."""
        df = df.astype(object).where(pd.notna(df), "")
        return df.values.tolist()

    # ============================================
    # Sheet parsers
    # ============================================

    def parse_consolidado(self, workbook: WorkbookGrids) -> Optional[List[ExcelSection]]:
        sheet_name = workbook.find_sheet(*self.CONSOLIDADO_SHEETS)
        if sheet_name is None:
            logger.error(f"No Consolidado sheet in {workbook.filename} (sheets: {workbook.sheet_names})")
            return None
        return parse_consolidado_grid(workbook.grid(sheet_name))

    def parse_eerr(self, workbook: WorkbookGrids, sheet_name: str) -> Optional[EERRData]:
        """Parse a per-branch EERR sheet; "EERR Sevilla" also matches any sheet containing "Sevilla"."""
        found = workbook.find_sheet(sheet_name)
        if found is None:
            branch = sheet_name.split()[-1] if sheet_name.split() else ""
            found = workbook.find_sheet_containing(branch)
        if found is None:
            logger.error(f"Sheet {sheet_name} not found in {workbook.filename}")
            return None
        return parse_eerr_grid(workbook.grid(found), found)

    def parse_libro_compras(self, workbook: WorkbookGrids) -> Optional[List[LedgerTransaction]]:
        """
        Read the LC (Libro de Compras) sheet.
        First row is the export header; rows with an empty first cell are skipped.
        """
        sheet_name = workbook.find_sheet(self.settings.ledger_sheet_name)
        if sheet_name is None:
            logger.error(f"Sheet {self.settings.ledger_sheet_name} not found in {workbook.filename}")
            return None

        grid = workbook.grid(sheet_name)
        if len(grid) < 2:
            logger.error(f"No data in sheet {sheet_name}")
            return None

        transactions = []
        for row in grid[1:]:
            if not row or not _text(row[0]):
                continue
            fields = {
                field: row[index] if index < len(row) else None
                for field, index in self.LEDGER_COLUMNS.items()
            }
            transactions.append(LedgerTransaction(**fields))

        logger.info(f"Parsed {len(transactions)} ledger transactions from {sheet_name}")
        return transactions

    @staticmethod
    def _find_column(headers: List[str], *, exact: tuple = (), contains: tuple = ()) -> int:
        for index, header in enumerate(headers):
            if header in exact or any(fragment in header for fragment in contains):
                return index
        return -1

    def parse_clasificacion(self, workbook: WorkbookGrids) -> Optional[List[SupplierClassification]]:
        """Read the supplier classification sheet (RUT, name, cost center, account type, notes)."""
        sheet_name = workbook.find_sheet(*self.CLASIFICACION_SHEETS) or workbook.find_sheet_containing("clasif")
        if sheet_name is None:
            logger.error(f"No CLASIFICACION sheet in {workbook.filename}")
            return None

        grid = workbook.grid(sheet_name)
        if len(grid) < 2:
            logger.error(f"No data in sheet {sheet_name}")
            return None

        header_index = None
        for index in range(min(self.settings.clasificacion_header_scan_rows, len(grid))):
            if any("RUT" in _text(cell).upper() for cell in grid[index]):
                header_index = index
                break
        if header_index is None:
            logger.error(f"No RUT header row in sheet {sheet_name}")
            return None

        headers = [_text(cell).upper() for cell in grid[header_index]]
        rut_col = self._find_column(headers, contains=("RUT",))
        name_col = self._find_column(headers, contains=("COLUMNA", "NOMBRE", "RAZON"))
        if name_col == -1:
            name_col = 1
        cc_col = self._find_column(headers, exact=("CC",), contains=("CENTRO", "COSTO"))
        account_col = self._find_column(headers, exact=("CUENTA",), contains=("TIPO",))
        obs_col = self._find_column(headers, exact=("OBS",), contains=("OBSERV",))

        def cell(row: List[Any], index: int) -> str:
            if index == -1 or index >= len(row):
                return ""
            return _text(row[index])

        suppliers = []
        for row in grid[header_index + 1:]:
            rut = cell(row, rut_col)
            if not rut:
                continue
            suppliers.append(SupplierClassification(
                rut=rut,
                nombre=cell(row, name_col),
                centro_costo=cell(row, cc_col),
                tipo_cuenta=cell(row, account_col),
                observaciones=cell(row, obs_col),
            ))

        logger.info(f"Parsed {len(suppliers)} supplier classifications from {sheet_name}")
        return suppliers

    # ============================================
    # Upload pipeline
    # ============================================

    def process_upload(self, file_content: bytes, filename: str) -> UploadResult:
        """
        Parse an uploaded workbook: the Consolidado sections plus one EERR per
        configured branch generated from the LC sheet.

        Raises:
            WorkbookError: Unreadable file or no parseable Consolidado sheet
        """
        workbook = self.load(file_content, filename)

        consolidado = self.parse_consolidado(workbook)
        if not consolidado:
            raise WorkbookError(
                f'Sheet "Consolidado" not found or not parseable in {filename} '
                f"(sheets found: {', '.join(workbook.sheet_names)})"
            )

        transactions = self.parse_libro_compras(workbook) or []

        branches: Dict[str, Optional[EERRData]] = {}
        if transactions:
            for branch in self.settings.branches:
                branches[branch] = build_branch_statement(transactions, branch)
        else:
            logger.warning(f"No ledger transactions in {filename}, branch statements not generated")

        sheets_processed = ["Consolidado"]
        sheets_processed.extend(statement.sheet_name for statement in branches.values() if statement is not None)

        return UploadResult(
            file_name=filename,
            consolidado=consolidado,
            branches=branches,
            transactions=len(transactions),
            sheets_processed=sheets_processed,
        )
