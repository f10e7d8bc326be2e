"""
BISM EERR - Constants
Income-statement headings, month names and fixed labels shared by parsers and aggregators.
"""

# Spanish month names (Chilean calendar), January first
MONTH_NAMES = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
]

# ============================================
# EERR headings
# ============================================

INGRESOS_OPERACIONALES = "INGRESOS OPERACIONALES"
GASTOS_DE_REMUNERACION = "GASTOS DE REMUNERACION"
GASTOS_DE_OPERACION = "GASTOS DE OPERACION"
GASTOS_DE_ADMINISTRACION = "GASTOS DE ADMINISTRACION"
OTROS_GASTOS = "OTROS GASTOS"
OTROS_EGRESOS = "OTROS EGRESOS FUERA DE EXPLOTACION"

EERR_HEADINGS = [
    INGRESOS_OPERACIONALES,
    GASTOS_DE_REMUNERACION,
    GASTOS_DE_OPERACION,
    GASTOS_DE_ADMINISTRACION,
    OTROS_GASTOS,
    OTROS_EGRESOS,
]

UNCLASSIFIED = "SIN CLASIFICAR"
DEFAULT_HEADING = GASTOS_DE_OPERACION

# Expense headings subtracted from the gross margin to reach EBITDA
OPERATING_EXPENSE_HEADINGS = [
    GASTOS_DE_REMUNERACION,
    GASTOS_DE_OPERACION,
    GASTOS_DE_ADMINISTRACION,
    OTROS_GASTOS,
]

# ============================================
# Fixed row labels
# ============================================

VENTAS = "Ventas"
COSTO_DE_VENTA = "Costo de venta"
TRANSBANK = "Transbank"
BONIFICACION_POR_TRAMO = "Bonificacion por tramo"

GROSS_MARGIN_LABEL = "MARGEN BRUTO OPERACIONAL"
EBITDA_LABEL = "EBIDTA"  # spelling used by the source workbooks
NET_RESULT_LABEL = "RESULTADO NETO"
FINAL_RESULT_CATEGORY = "RESULTADO FINAL"
TOTAL_PREFIX = "TOTAL "

# Synthetic summary columns
CONSOLIDADO = "CONSOLIDADO"
ANUAL = "ANUAL"
