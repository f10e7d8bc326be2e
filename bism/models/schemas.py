"""
BISM EERR - Pydantic Models
Income-statement structures and ledger records exchanged by the parsers and aggregators.
"""
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Literal, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from bism.utils.values import parse_date, parse_value


# ============================================
# Enums
# ============================================

class Metric(str, Enum):
    AMOUNT = "Monto"
    PERCENT = "%"
    AVERAGE = "Promedio"


class ColumnKey(NamedTuple):
    """One column of a statement row: a month (or summary) label and a metric."""
    month: str
    metric: Metric

    @property
    def label(self) -> str:
        return f"{self.month} {self.metric.value}"

    @classmethod
    def from_label(cls, label: str) -> Optional["ColumnKey"]:
        """Parse a flat column label such as "Enero Monto" or "ANUAL %"."""
        month, _, metric = str(label).strip().rpartition(" ")
        if not month:
            return None
        for candidate in Metric:
            if metric.lower() == candidate.value.lower():
                return cls(month.strip(), candidate)
        return None


# ============================================
# Base Models
# ============================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ============================================
# EERR Schemas
# ============================================

class EERRRow(BaseSchema):
    """
    A statement line: the Item label and its numeric columns.

    Columns keep insertion order, so a row built month by month renders
    left to right the same way the source sheet does.
    """
    item: str
    columns: Dict[ColumnKey, float] = Field(default_factory=dict)

    @field_validator("columns", mode="before")
    @classmethod
    def _parse_column_labels(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        parsed = {}
        for key, cell in value.items():
            if isinstance(key, str):
                key = ColumnKey.from_label(key)
                if key is None:
                    continue
            parsed[key] = parse_value(cell)
        return parsed

    @field_serializer("columns")
    def _serialize_columns(self, columns: Dict[ColumnKey, float]) -> Dict[str, float]:
        return {key.label: value for key, value in columns.items()}

    def get(self, month: str, metric: Metric = Metric.AMOUNT) -> float:
        return self.columns.get(ColumnKey(month, Metric(metric)), 0.0)

    def has(self, month: str, metric: Metric = Metric.AMOUNT) -> bool:
        return ColumnKey(month, Metric(metric)) in self.columns

    def set(self, month: str, metric: Metric, value: float) -> None:
        self.columns[ColumnKey(month, Metric(metric))] = value

    def to_excel_row(self) -> Dict[str, Any]:
        """Flatten to the {"Item": ..., "Enero Monto": ...} shape used by table views."""
        row: Dict[str, Any] = {"Item": self.item}
        for key, value in self.columns.items():
            row[key.label] = value
        return row

    @classmethod
    def from_excel_row(cls, row: Dict[str, Any]) -> "EERRRow":
        columns = {key: value for key, value in row.items() if key != "Item"}
        return cls(item=str(row.get("Item", "")), columns=columns)


class EERRCategory(BaseSchema):
    name: str
    rows: List[EERRRow] = Field(default_factory=list)
    total: Optional[EERRRow] = None


class EERRData(BaseSchema):
    sheet_name: str
    months: List[str] = Field(default_factory=list)
    categories: List[EERRCategory] = Field(default_factory=list)
    month_to_period: Dict[str, str] = Field(default_factory=dict)

    def find_category(self, name: str) -> Optional[EERRCategory]:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def find_row(self, item: str) -> Optional[EERRRow]:
        """First row (or category total) whose Item matches exactly."""
        for category in self.categories:
            for row in category.rows:
                if row.item == item:
                    return row
            if category.total is not None and category.total.item == item:
                return category.total
        return None


class ExcelSection(BaseSchema):
    """A section of the legacy Consolidado sheet."""
    name: Literal["Labranza", "Sevilla", "Consolidados"]
    rows: List[EERRRow] = Field(default_factory=list)

    def to_excel_rows(self) -> List[Dict[str, Any]]:
        return [row.to_excel_row() for row in self.rows]


# ============================================
# Libro de Compras Schemas
# ============================================

class LedgerTransaction(BaseSchema):
    """One line of the purchase ledger (Libro de Compras). Read-only."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)

    nro: Optional[int] = None
    tipo_doc: str = Field("", alias="tipoDoc")
    tipo_compra: str = Field("", alias="tipoCompra")
    rut_proveedor: str = Field("", alias="rutProveedor")
    razon_social: str = Field("", alias="razonSocial")
    unidad_negocio: str = Field("", alias="unidadNegocio")
    cuenta: str = ""
    encabezado: Optional[str] = None
    folio: str = ""
    fecha_docto: Optional[date] = Field(None, alias="fechaDocto")
    monto_exento: float = Field(0.0, alias="montoExento")
    monto_neto: float = Field(0.0, alias="montoNeto")
    monto_iva_recuperable: float = Field(0.0, alias="montoIVARecuperable")
    monto_total: float = Field(0.0, alias="montoTotal")

    @field_validator("monto_exento", "monto_neto", "monto_iva_recuperable", "monto_total", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return parse_value(value)

    @field_validator("fecha_docto", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Optional[date]:
        return parse_date(value)

    @field_validator("nro", mode="before")
    @classmethod
    def _coerce_nro(cls, value: Any) -> Optional[int]:
        number = parse_value(value)
        return int(number) if number else None

    @field_validator(
        "tipo_doc", "tipo_compra", "rut_proveedor", "razon_social",
        "unidad_negocio", "cuenta", "folio", mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, float):
            if value != value:  # NaN
                return ""
            if value.is_integer():
                return str(int(value))
        return str(value).strip()

    @field_validator("encabezado", mode="before")
    @classmethod
    def _coerce_heading(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class PeriodLedger(BaseSchema):
    """The ledger lines and manually entered values of one period (YYYY-MM)."""
    periodo: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    transactions: List[LedgerTransaction] = Field(default_factory=list)
    manual_values: Dict[str, float] = Field(default_factory=dict)


class SupplierClassification(BaseSchema):
    """A row of the CLASIFICACION sheet: supplier RUT and its cost classification."""
    rut: str
    nombre: str = ""
    centro_costo: str = ""
    tipo_cuenta: str = ""
    observaciones: str = ""


# ============================================
# Upload Schemas
# ============================================

class UploadResult(BaseSchema):
    """Everything parsed out of one uploaded workbook."""
    file_name: str
    consolidado: List[ExcelSection] = Field(default_factory=list)
    branches: Dict[str, Optional[EERRData]] = Field(default_factory=dict)
    transactions: int = 0
    sheets_processed: List[str] = Field(default_factory=list)

    @property
    def sections_found(self) -> List[str]:
        return [section.name for section in self.consolidado]
