"""
Lectura del libro de rendición: cada hoja esperada se convierte en una tabla de filas (dict).

Las hojas se leen con pandas (openpyxl) y se normalizan pasando por texto delimitado
(separador configurable, ';' por defecto): los valores quedan como los daría una exportación
CSV de la hoja (números como números, fechas como texto, TRUE/FALSE como booleanos).
Las cuatro hojas se leen en paralelo; cada tarea escribe solo en su tabla y la finalización
se notifica a la CompletionGate desde el hilo coordinador.
"""

import io
import logging
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime, time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Union

import pandas as pd

from rendicion.config import DEFAULT_DELIMITER, DEFAULT_LOAD_WORKERS
from rendicion.gate import EXPECTED_TABLES, CompletionGate

logger = logging.getLogger("rendicion.loader")

Row = dict[str, Any]

# Columnas de enlace entre hojas: se conservan como texto (sin inferir números).
KEY_COLUMNS = frozenset({"RefContrato", "Cif", "CIF Adjudicatario"})

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")
_INTEGRAL_FLOAT_RE = re.compile(r"^([+-]?\d+)\.0+$")
_BOOL_TEXT = {"true": True, "false": False}


class SheetLoadError(Exception):
    """Fallo leyendo o convirtiendo una hoja (o el propio libro). Aborta la ejecución."""

    def __init__(self, sheet: str, cause: Union[BaseException, str]):
        self.sheet = sheet
        self.cause = cause
        super().__init__(f"No se pudo leer la hoja '{sheet}': {cause}")


class MissingSheetsError(SheetLoadError):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(", ".join(missing), "el libro no contiene las hojas esperadas")


@dataclass
class Tables:
    """Las cuatro tablas de una ejecución. Solo se añaden filas durante la lectura."""

    contratos: list[Row] = field(default_factory=list)
    adjudicatarios: list[Row] = field(default_factory=list)
    utes: list[Row] = field(default_factory=list)
    presupuestarias: list[Row] = field(default_factory=list)

    def table(self, name: str) -> list[Row]:
        if name not in EXPECTED_TABLES:
            raise KeyError(name)
        return getattr(self, name)

    def counts(self) -> dict[str, int]:
        return {name: len(self.table(name)) for name in EXPECTED_TABLES}


def normalize_key(value: Any) -> Optional[str]:
    """Texto comparable para claves de enlace (RefContrato, Cif). None si está vacío."""
    if value is None:
        return None
    if isinstance(value, float):
        if value != value:
            return None
        if value.is_integer():
            return str(int(value))
    s = str(value).strip()
    m = _INTEGRAL_FLOAT_RE.match(s)
    if m:
        s = m.group(1)
    return s or None


def _infer_scalar(text: str) -> Any:
    """Convierte una celda de texto delimitado al tipo que representa."""
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    lowered = text.lower()
    if lowered in _BOOL_TEXT:
        return _BOOL_TEXT[lowered]
    return text


def _render_date(value: Any) -> Any:
    """Fecha de celda → texto YYYY-MM-DD (ISO completo si lleva hora), sea cual sea el tipo de la columna."""
    if isinstance(value, datetime):
        if pd.isna(value):
            return None
        if value.time() == time(0):
            return value.strftime("%Y-%m-%d")
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def sheet_to_records(df: pd.DataFrame, delimiter: str = DEFAULT_DELIMITER) -> list[Row]:
    """
    Convierte una hoja (DataFrame con cabeceras) en filas dict, en el orden de la hoja.
    Celdas vacías → None; filas completamente vacías se descartan.
    """
    if len(df.columns) == 0:
        return []
    df = df.apply(lambda column: column.map(_render_date))
    text = df.to_csv(sep=delimiter, index=False)
    parsed = pd.read_csv(io.StringIO(text), sep=delimiter, dtype=str, keep_default_na=False)
    columns = [str(c).strip() for c in parsed.columns]

    records: list[Row] = []
    for values in parsed.itertuples(index=False, name=None):
        row: Row = {}
        for column, raw in zip(columns, values):
            cell = raw.strip() if isinstance(raw, str) else raw
            if cell is None or cell == "":
                row[column] = None
            elif column in KEY_COLUMNS:
                row[column] = normalize_key(cell)
            else:
                row[column] = _infer_scalar(cell)
        if any(v is not None for v in row.values()):
            records.append(row)
    return records


def list_sheets(workbook_path: Union[str, Path]) -> list[str]:
    """Nombres de las hojas del libro. SheetLoadError si no se puede abrir."""
    try:
        with pd.ExcelFile(workbook_path, engine="openpyxl") as xl:
            return [str(name) for name in xl.sheet_names]
    except Exception as e:
        raise SheetLoadError(Path(workbook_path).name, e) from e


def load_sheet(
    workbook_path: Union[str, Path],
    sheet_name: str,
    delimiter: str = DEFAULT_DELIMITER,
    on_row: Optional[Callable[[Row], None]] = None,
) -> list[Row]:
    """Lee una hoja y emite cada fila a on_row según se produce. Devuelve también la lista."""
    try:
        df = pd.read_excel(
            workbook_path, sheet_name=sheet_name, engine="openpyxl", keep_default_na=False, na_values=[]
        )
        records = sheet_to_records(df, delimiter)
    except Exception as e:
        raise SheetLoadError(sheet_name, e) from e
    logger.debug("Hoja %s: %s filas", sheet_name, len(records))
    if on_row is not None:
        for record in records:
            on_row(record)
    return records


def match_sheets(sheet_names: list[str]) -> dict[str, str]:
    """
    Asocia cada tabla esperada con su hoja (nombre sin distinguir mayúsculas).
    Hojas adicionales se ignoran con aviso; si falta alguna, MissingSheetsError.
    """
    by_table: dict[str, str] = {}
    for sheet in sheet_names:
        key = sheet.lower()
        if key in EXPECTED_TABLES and key not in by_table:
            by_table[key] = sheet
        else:
            logger.warning("Hoja '%s' no esperada; se ignora.", sheet)
    missing = [name for name in EXPECTED_TABLES if name not in by_table]
    if missing:
        raise MissingSheetsError(missing)
    return by_table


def load_tables(
    workbook_path: Union[str, Path],
    delimiter: str = DEFAULT_DELIMITER,
    max_workers: int = DEFAULT_LOAD_WORKERS,
    on_complete: Optional[Callable[[Tables], None]] = None,
) -> Tables:
    """
    Lee las cuatro hojas en paralelo y devuelve las tablas.
    on_complete(tables) se invoca una vez, cuando la CompletionGate confirma que todas terminaron.
    El primer fallo se propaga como SheetLoadError.
    """
    by_table = match_sheets(list_sheets(workbook_path))
    tables = Tables()
    gate = CompletionGate(
        EXPECTED_TABLES,
        on_complete=(lambda: on_complete(tables)) if on_complete is not None else None,
    )
    workers = max(1, min(max_workers, len(by_table)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            executor.submit(load_sheet, workbook_path, sheet, delimiter, tables.table(name).append): name
            for name, sheet in by_table.items()
        }
        for fut in as_completed(futures):
            name = futures[fut]
            try:
                fut.result()
            except SheetLoadError as e:
                for other in futures:
                    other.cancel()
                gate.fail(name, e)
            gate.mark_done(name)
    return tables
