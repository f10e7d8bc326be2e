"""
BISM EERR - Account Classifier
Maps a ledger account name (or an explicit manual heading) to an EERR heading.
"""
import logging
import re
from typing import List, Optional, Tuple

from bism.constants import (
    DEFAULT_HEADING,
    GASTOS_DE_ADMINISTRACION,
    GASTOS_DE_OPERACION,
    GASTOS_DE_REMUNERACION,
    INGRESOS_OPERACIONALES,
    OTROS_EGRESOS,
    OTROS_GASTOS,
)

logger = logging.getLogger(__name__)

# Known account names and numeric account-code prefixes
ACCOUNT_HEADINGS = {
    # INGRESOS OPERACIONALES
    "Ventas": INGRESOS_OPERACIONALES,
    "Costo de venta": INGRESOS_OPERACIONALES,
    "Transbank": INGRESOS_OPERACIONALES,
    "Bonificacion por tramo": INGRESOS_OPERACIONALES,

    # GASTOS DE REMUNERACION
    "Sueldo Personal": GASTOS_DE_REMUNERACION,
    "Seguro de Cesantia": GASTOS_DE_REMUNERACION,
    "Seguro de Accidentes Trabajo": GASTOS_DE_REMUNERACION,
    "Seguro Invalidez y Sobrevivencia": GASTOS_DE_REMUNERACION,
    "Finiquitos": GASTOS_DE_REMUNERACION,
    "Honorarios BH": GASTOS_DE_REMUNERACION,
    "Honorarios Factura BSM": GASTOS_DE_REMUNERACION,
    "Provision de Vacaciones": GASTOS_DE_REMUNERACION,
    "Honorarios Administracion": GASTOS_DE_REMUNERACION,

    # GASTOS DE OPERACION
    "Consumo de Electricidad": GASTOS_DE_OPERACION,
    "Consumo de Agua": GASTOS_DE_OPERACION,
    "Comunicaciones": GASTOS_DE_OPERACION,
    "Articulos de Aseo": GASTOS_DE_OPERACION,
    "Mantencion y Reparacion": GASTOS_DE_OPERACION,
    "Gastos Generales": GASTOS_DE_OPERACION,
    "Servicios Externos": GASTOS_DE_OPERACION,
    "Caja Chica": GASTOS_DE_OPERACION,
    "Sin Clasificar": GASTOS_DE_OPERACION,
    "Sin efecto": GASTOS_DE_OPERACION,

    # GASTOS DE ADMINISTRACION
    "Materiales y Utiles de Oficina": GASTOS_DE_ADMINISTRACION,
    "Publicidad y Propaganda BSM": GASTOS_DE_ADMINISTRACION,
    "Licencias y Software": GASTOS_DE_ADMINISTRACION,
    "Gastos Notariales": GASTOS_DE_ADMINISTRACION,
    "Gastos Bancarios": GASTOS_DE_ADMINISTRACION,
    "Contribuciones": GASTOS_DE_ADMINISTRACION,
    "Patentes Municipales": GASTOS_DE_ADMINISTRACION,
    "Gastos generales": GASTOS_DE_ADMINISTRACION,
    "Recaudacion y Sencillo": GASTOS_DE_ADMINISTRACION,
    "Seguros": GASTOS_DE_ADMINISTRACION,
    "Publicidad y Propaganda": GASTOS_DE_ADMINISTRACION,

    # OTROS GASTOS
    "Arriendo": OTROS_GASTOS,
    "Gestion BSM": OTROS_GASTOS,
    "Supervisor punto de venta (S.M)": OTROS_GASTOS,

    # OTROS EGRESOS FUERA DE EXPLOTACION
    "Pago Cuota Leasing": OTROS_EGRESOS,
    "Pago Cuota creditos Bancarios": OTROS_EGRESOS,
    "Directorio": OTROS_EGRESOS,

    # Numeric account-code prefixes
    "41": INGRESOS_OPERACIONALES,
    "42": INGRESOS_OPERACIONALES,
    "60": GASTOS_DE_REMUNERACION,
    "51": GASTOS_DE_OPERACION,
    "52": GASTOS_DE_OPERACION,
    "61": GASTOS_DE_ADMINISTRACION,
    "62": GASTOS_DE_ADMINISTRACION,
    "63": OTROS_GASTOS,
    "64": OTROS_GASTOS,
    "65": OTROS_EGRESOS,
    "66": OTROS_EGRESOS,
}

# Keyword rules, evaluated in order; first match wins
KEYWORD_RULES: List[Tuple[Tuple[str, ...], str]] = [
    (("venta", "ingreso", "revenue", "transbank", "bonificacion"), INGRESOS_OPERACIONALES),
    (("sueldo", "honorario", "remuneracion", "finiquito", "vacaciones", "gratificacion",
      "bono", "cesantia", "accidente", "invalidez", "sobrevivencia", "provision"), GASTOS_DE_REMUNERACION),
    (("electricidad", "agua", "luz", "comunicacion", "aseo", "mantencion", "reparacion",
      "servicio", "caja chica", "general"), GASTOS_DE_OPERACION),
    (("oficina", "publicidad", "licencia", "software", "notarial", "bancario", "contribucion",
      "patente", "recaudacion", "propaganda", "materiales", "utiles", "seguro"), GASTOS_DE_ADMINISTRACION),
    (("arriendo", "gestion", "supervisor"), OTROS_GASTOS),
    (("leasing", "credito", "prestamo", "directorio", "interes", "cuota"), OTROS_EGRESOS),
]

_NUMERIC_PREFIXES = sorted(
    (key for key in ACCOUNT_HEADINGS if key.isdigit()),
    key=len,
    reverse=True,
)
_HEADINGS_BY_LOWER = {key.lower(): heading for key, heading in ACCOUNT_HEADINGS.items()}
_DIGITS = re.compile(r"^\d+")


def lookup_account(account_name: str) -> Optional[str]:
    """
    Heading bound to a known account name or account code, or None.

    Exact name first, then case-insensitive, then the longest matching numeric prefix.
    """
    if not account_name or not account_name.strip():
        return None

    cleaned = account_name.strip()
    if cleaned in ACCOUNT_HEADINGS:
        return ACCOUNT_HEADINGS[cleaned]

    heading = _HEADINGS_BY_LOWER.get(cleaned.lower())
    if heading:
        return heading

    if _DIGITS.match(cleaned):
        for prefix in _NUMERIC_PREFIXES:
            if cleaned.startswith(prefix):
                return ACCOUNT_HEADINGS[prefix]

    return None


def classify_by_keywords(account_name: str) -> str:
    name = (account_name or "").lower()
    for keywords, heading in KEYWORD_RULES:
        if any(keyword in name for keyword in keywords):
            return heading
    return DEFAULT_HEADING


def classify(account_name: str, manual_heading: Optional[str] = None) -> str:
    """
    Resolve the EERR heading of an account.

    A non-empty manual heading always wins and is returned verbatim.
    Otherwise: known account table, keyword rules, and finally GASTOS DE OPERACION.
    """
    if manual_heading is not None and manual_heading.strip():
        return manual_heading

    heading = lookup_account(account_name)
    if heading:
        return heading

    heading = classify_by_keywords(account_name)
    logger.debug(f"Account {account_name!r} classified by keywords as {heading}")
    return heading


def accounts_for_heading(heading: str) -> List[str]:
    """Descriptive account names bound to a heading (numeric prefixes excluded), sorted."""
    if not heading:
        return []
    return sorted(
        account for account, bound in ACCOUNT_HEADINGS.items()
        if bound == heading and not account.isdigit()
    )
