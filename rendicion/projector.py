"""
Proyección de las tablas leídas a registros de salida (uno por contrato).

Cada contrato lleva sus adjudicatarios (con las entidades de la UTE cuando procede) y sus
aplicaciones presupuestarias, enlazados por RefContrato / Cif. Las filas sin contrato
(o sin adjudicatario) no generan error: simplemente no aparecen en ningún contrato.
"""

import math
from collections import defaultdict
from numbers import Number
from typing import Any, Optional

from rendicion.config import DEFAULT_DECIMAL_POINT, DEFAULT_THOUSANDS_SEP
from rendicion.loader import Row, Tables, normalize_key

CONTRATO_FIELDS = (
    "RefContrato",
    "FechaAdjudicacion",
    "FechaFormalizacion",
    "DescTipoContrato",
    "DescFormaTramitacion",
    "DescLegislacionAplicable",
    "DescProcAdjudicacion",
    "Sara",
    "ValorEstimado",
    "NumLotes",
    "Objeto",
    "ImporteAdjudicacion",
    "Impuestos",
    "PresupuestoLicitacion",
    "PlazoEjecucionMeses",
)
AMOUNT_FIELDS = frozenset({"ValorEstimado", "ImporteAdjudicacion", "Impuestos", "PresupuestoLicitacion"})
ADJUDICATARIO_FIELDS = ("Extranjero", "Cif", "Nombre", "Ute")
ENTIDAD_FIELDS = ("Extranjero", "Cif", "Nombre")

_FALSY_TEXT = frozenset({"", "false", "0"})


class NumberFormat:
    """Formato de importes con separador de miles; hasta 3 decimales, sin ceros finales."""

    def __init__(self, thousands_sep: str = DEFAULT_THOUSANDS_SEP, decimal_point: str = DEFAULT_DECIMAL_POINT,
                 max_fraction_digits: int = 3):
        self.thousands_sep = thousands_sep
        self.decimal_point = decimal_point
        self.max_fraction_digits = max_fraction_digits

    @staticmethod
    def is_number(value: Any) -> bool:
        if isinstance(value, bool) or not isinstance(value, Number):
            return False
        return not (isinstance(value, float) and not math.isfinite(value))

    def format(self, value: Any) -> Any:
        """Texto formateado si value es numérico; si no, value sin cambios."""
        if not self.is_number(value):
            return value
        text = f"{value:,.{self.max_fraction_digits}f}"
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        if text in ("-0", ""):
            text = "0"
        integer, _, fraction = text.partition(".")
        integer = integer.replace(",", self.thousands_sep)
        return integer + (self.decimal_point + fraction if fraction else "")


def is_truthy(value: Any) -> bool:
    """Flag de hoja de cálculo (Ute, Extranjero...): vacío, False, 0 y los textos "false" o "0" son falsos."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_TEXT
    return bool(value)


def _index_by(rows: list[Row], column: str) -> dict[str, list[Row]]:
    index: dict[str, list[Row]] = defaultdict(list)
    for row in rows:
        key = normalize_key(row.get(column))
        if key is not None:
            index[key].append(row)
    return index


class JoinIndex:
    """Índices por clave de enlace, construidos una vez por ejecución."""

    def __init__(self, tables: Tables):
        self.adjudicatarios = _index_by(tables.adjudicatarios, "RefContrato")
        self.presupuestarias = _index_by(tables.presupuestarias, "RefContrato")
        self.utes = _index_by(tables.utes, "CIF Adjudicatario")

    @staticmethod
    def _lookup(index: dict[str, list[Row]], value: Any) -> list[Row]:
        key = normalize_key(value)
        if key is None:
            return []
        return index.get(key, [])

    def adjudicatarios_of(self, ref_contrato: Any) -> list[Row]:
        return self._lookup(self.adjudicatarios, ref_contrato)

    def presupuestarias_of(self, ref_contrato: Any) -> list[Row]:
        return self._lookup(self.presupuestarias, ref_contrato)

    def entidades_of(self, cif: Any) -> list[Row]:
        return self._lookup(self.utes, cif)


def project_entidad(row: Row) -> dict[str, Any]:
    return {name: row.get(name) for name in ENTIDAD_FIELDS}


def project_adjudicatario(row: Row, index: JoinIndex) -> dict[str, Any]:
    """Extranjero, Cif, Nombre, Ute y, solo si la UTE está marcada, Entidades."""
    result = {name: row.get(name) for name in ADJUDICATARIO_FIELDS}
    if is_truthy(row.get("Ute")):
        result["Entidades"] = [project_entidad(e) for e in index.entidades_of(row.get("Cif"))]
    return result


def project_aplicacion(row: Row, formatter: NumberFormat) -> dict[str, Any]:
    return {
        "Descripcion": row.get("Descripcion"),
        "Importe": formatter.format(row.get("Importe")),
    }


def project_contrato(contrato: Row, index: JoinIndex, formatter: NumberFormat) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for name in CONTRATO_FIELDS:
        value = contrato.get(name)
        result[name] = formatter.format(value) if name in AMOUNT_FIELDS else value

    ref = contrato.get("RefContrato")
    result["Adjudicatarios"] = [
        project_adjudicatario(a, index) for a in index.adjudicatarios_of(ref)
    ]
    result["AplicacionesPresupuestarias"] = [
        project_aplicacion(p, formatter) for p in index.presupuestarias_of(ref)
    ]
    return result


def project_contratos(tables: Tables, formatter: Optional[NumberFormat] = None) -> list[dict[str, Any]]:
    """Un registro por fila de Contratos, en el orden de la hoja."""
    formatter = formatter or NumberFormat()
    index = JoinIndex(tables)
    return [project_contrato(c, index, formatter) for c in tables.contratos]
