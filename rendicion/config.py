"""
Carga la configuración de la conversión desde el entorno (con valores por defecto).

Todos los valores se leen del entorno del proceso (p. ej. .env del directorio de trabajo,
cargado por la CLI). Los flags de línea de comandos tienen prioridad sobre estas variables.
RENDICION_INPUT_* / RENDICION_OUTPUT_* para rutas; RENDICION_YEAR para el ejercicio;
RENDICION_LOCALE, RENDICION_THOUSANDS_SEP y RENDICION_DECIMAL_POINT para el formato de importes.
"""

import locale
import logging
import os
from typing import Optional

logger = logging.getLogger("rendicion.config")

DEFAULT_INPUT_PATH = "./data"
DEFAULT_INPUT_FILENAME = "TCU_PRUEBA_SARA_CON LOTES"
DEFAULT_OUTPUT_PATH = "./result"
DEFAULT_OUTPUT_FILENAME = "result"
DEFAULT_YEAR = 2016
DEFAULT_DELIMITER = ";"
DEFAULT_LOAD_WORKERS = 4

INPUT_EXTENSION = ".xlsx"
OUTPUT_EXTENSION = ".xml"

# Convención en-US (la de toLocaleString sin locale explícito).
DEFAULT_THOUSANDS_SEP = ","
DEFAULT_DECIMAL_POINT = "."


def _env(name: str) -> Optional[str]:
    raw = os.environ.get(name, "").strip()
    return raw or None


def get_input_path() -> str:
    """Directorio del libro de origen (RENDICION_INPUT_PATH). Por defecto ./data."""
    return _env("RENDICION_INPUT_PATH") or DEFAULT_INPUT_PATH


def get_input_filename() -> str:
    """Nombre del libro sin extensión (RENDICION_INPUT_FILENAME)."""
    return _env("RENDICION_INPUT_FILENAME") or DEFAULT_INPUT_FILENAME


def get_output_path() -> str:
    """Directorio de salida (RENDICION_OUTPUT_PATH). Se crea si no existe."""
    return _env("RENDICION_OUTPUT_PATH") or DEFAULT_OUTPUT_PATH


def get_output_filename() -> str:
    """Nombre del XML sin extensión (RENDICION_OUTPUT_FILENAME)."""
    return _env("RENDICION_OUTPUT_FILENAME") or DEFAULT_OUTPUT_FILENAME


def get_year() -> int:
    """Ejercicio del atributo raíz (RENDICION_YEAR). Por defecto 2016."""
    raw = _env("RENDICION_YEAR")
    if raw is None:
        return DEFAULT_YEAR
    try:
        return int(raw)
    except ValueError:
        return DEFAULT_YEAR


def get_delimiter() -> str:
    """Separador de campos para la conversión hoja → filas (RENDICION_DELIMITER). Por defecto ';'."""
    raw = os.environ.get("RENDICION_DELIMITER", "")
    return raw if len(raw) == 1 else DEFAULT_DELIMITER


def get_load_workers() -> int:
    """Hojas leídas en paralelo (RENDICION_LOAD_WORKERS). 1 = secuencial."""
    raw = os.environ.get("RENDICION_LOAD_WORKERS", str(DEFAULT_LOAD_WORKERS))
    try:
        n = int(raw)
        return max(1, n)
    except ValueError:
        return DEFAULT_LOAD_WORKERS


def get_number_separators() -> tuple[str, str]:
    """
    Devuelve (separador de miles, separador decimal) para formatear importes.

    Si RENDICION_LOCALE está definido se usa localeconv() de ese locale del sistema;
    RENDICION_THOUSANDS_SEP y RENDICION_DECIMAL_POINT prevalecen sobre ambos.
    """
    thousands, decimal = DEFAULT_THOUSANDS_SEP, DEFAULT_DECIMAL_POINT
    name = _env("RENDICION_LOCALE")
    if name:
        previous = locale.setlocale(locale.LC_NUMERIC)
        try:
            locale.setlocale(locale.LC_NUMERIC, name)
            conv = locale.localeconv()
            thousands = conv.get("thousands_sep") or thousands
            decimal = conv.get("decimal_point") or decimal
        except locale.Error as e:
            logger.warning("Locale %s no disponible (%s); se usan los separadores por defecto.", name, e)
        finally:
            locale.setlocale(locale.LC_NUMERIC, previous)
    thousands = os.environ.get("RENDICION_THOUSANDS_SEP", thousands)
    decimal = os.environ.get("RENDICION_DECIMAL_POINT", decimal) or decimal
    return thousands, decimal
