"""
CLI de la conversión de rendición. Punto de entrada: rendicion-xml.

Lee el libro <input-path>/<input-filename>.xlsx (hojas Contratos, Adjudicatarios, Utes,
Presupuestarias), enlaza las filas y escribe <output-path>/<output-filename>.xml.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from rendicion import __version__
from rendicion.config import (
    INPUT_EXTENSION,
    get_delimiter,
    get_input_filename,
    get_input_path,
    get_load_workers,
    get_number_separators,
    get_output_filename,
    get_output_path,
    get_year,
)
from rendicion.loader import SheetLoadError, Tables, load_tables
from rendicion.projector import NumberFormat, project_contratos
from rendicion.xml_emitter import write_document

LOG_PREFIX = "[rendicion]"
logger = logging.getLogger("rendicion")


def _load_env() -> None:
    """Carga el .env del directorio actual (no sobrescribe variables ya definidas)."""
    load_dotenv(find_dotenv(usecwd=True))


def _configure_logging(verbose: bool = False) -> None:
    """Un único handler a stderr con prefijo; se rehace en cada ejecución (sys.stderr puede cambiar)."""
    for old in [h for h in logger.handlers if h.get_name() == LOG_PREFIX]:
        logger.removeHandler(old)
    h = logging.StreamHandler(sys.stderr)
    h.set_name(LOG_PREFIX)
    h.setFormatter(logging.Formatter(LOG_PREFIX + " %(message)s"))
    logger.addHandler(h)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rendicion-xml",
        description="Convierte el libro de rendición de contratos (XLSX) en un único XML <Rendicion>.",
        epilog="Los valores por defecto pueden fijarse también con variables RENDICION_* (o en .env).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--input-path", "--inputPath", "--ip",
        dest="input_path",
        default=None,
        metavar="DIR",
        help="Directorio donde está el libro de origen (por defecto ./data)",
    )
    parser.add_argument(
        "--input-filename", "--inputFilename", "--if",
        dest="input_filename",
        default=None,
        metavar="NOMBRE",
        help="Nombre del libro sin extensión .xlsx (por defecto 'TCU_PRUEBA_SARA_CON LOTES')",
    )
    parser.add_argument(
        "--output-path", "--outputPath", "--op",
        dest="output_path",
        default=None,
        metavar="DIR",
        help="Directorio donde guardar el XML; se crea si no existe (por defecto ./result)",
    )
    parser.add_argument(
        "--output-filename", "--outputFilename", "--of",
        dest="output_filename",
        default=None,
        metavar="NOMBRE",
        help="Nombre del XML sin extensión .xml (por defecto 'result')",
    )
    parser.add_argument(
        "--year", "-y",
        type=int,
        default=None,
        metavar="AAAA",
        help="Ejercicio de los contratos, atributo 'ejercicio' de <Rendicion> (por defecto 2016)",
    )
    parser.add_argument(
        "--delimiter",
        default=None,
        metavar="C",
        help="Separador de campos usado al convertir cada hoja en filas (por defecto ';')",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Más detalle en la traza (log DEBUG)",
    )
    return parser


def _convert(tables: Tables, output_path: str, output_filename: str, year: int) -> Path:
    """Continuación de la lectura: proyecta los contratos y escribe el XML."""
    logger.info(
        "Filas leídas: %s",
        ", ".join(f"{name}={n}" for name, n in tables.counts().items()),
    )
    thousands, decimal = get_number_separators()
    contratos = project_contratos(tables, NumberFormat(thousands, decimal))
    return write_document(contratos, output_path, output_filename, year=year)


def main(argv: Optional[list[str]] = None) -> int:
    _load_env()
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    logger.info("Use --help para ver las opciones disponibles")

    input_path = args.input_path or get_input_path()
    input_filename = (args.input_filename or get_input_filename()) + INPUT_EXTENSION
    output_path = args.output_path or get_output_path()
    output_filename = args.output_filename or get_output_filename()
    year = args.year if args.year is not None else get_year()
    delimiter = args.delimiter or get_delimiter()
    if len(delimiter) != 1:
        print("--delimiter debe ser un único carácter.", file=sys.stderr)
        return 1

    workbook = Path(input_path) / input_filename
    logger.info("Libro de origen: %s", input_filename)

    result: dict[str, Path] = {}

    def _on_complete(tables: Tables) -> None:
        result["path"] = _convert(tables, output_path, output_filename, year)

    try:
        load_tables(workbook, delimiter=delimiter, max_workers=get_load_workers(), on_complete=_on_complete)
    except SheetLoadError as e:
        print(e, file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error escribiendo el XML: {e}", file=sys.stderr)
        return 1

    print(f"Hecho. Puede abrir el fichero en {result['path']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
