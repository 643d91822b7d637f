"""
Serialización de los contratos proyectados al XML de rendición.

<Rendicion ejercicio="2016">
    <Contrato>
        <RefContrato>C1</RefContrato>
        ...
        <Adjudicatarios>
            <Adjudicatario>...</Adjudicatario>
        </Adjudicatarios>
    </Contrato>
</Rendicion>

Las listas se envuelven en un elemento con el nombre en plural y cada elemento usa el
nombre en singular de WRAP_HANDLERS.
"""

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from rendicion.config import DEFAULT_YEAR, OUTPUT_EXTENSION

logger = logging.getLogger("rendicion.xml_emitter")

ROOT_ELEMENT = "Rendicion"
YEAR_ATTRIBUTE = "ejercicio"
ITEM_ELEMENT = "Contrato"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

# Caracteres de control que XML 1.0 no admite (tab, LF y CR sí).
_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

WRAP_HANDLERS = {
    "Adjudicatarios": "Adjudicatario",
    "Entidades": "Entidad",
    "AplicacionesPresupuestarias": "AplicacionPresupuestaria",
}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return _INVALID_XML_CHARS.sub("", str(value))


def _append_value(parent: ET.Element, name: str, value: Any, wrap_handlers: Mapping[str, str]) -> None:
    element = ET.SubElement(parent, name)
    if isinstance(value, Mapping):
        _append_fields(element, value, wrap_handlers)
    elif isinstance(value, (list, tuple)):
        child_name = wrap_handlers.get(name, name)
        for item in value:
            _append_value(element, child_name, item, wrap_handlers)
    else:
        element.text = _text(value)


def _append_fields(parent: ET.Element, record: Mapping[str, Any], wrap_handlers: Mapping[str, str]) -> None:
    for name, value in record.items():
        _append_value(parent, name, value, wrap_handlers)


def build_document(
    contratos: Iterable[Mapping[str, Any]],
    year: Union[int, str] = DEFAULT_YEAR,
    root_name: str = ROOT_ELEMENT,
    item_name: str = ITEM_ELEMENT,
    wrap_handlers: Mapping[str, str] = WRAP_HANDLERS,
) -> ET.Element:
    """Árbol <Rendicion ejercicio=year> con un <Contrato> por registro."""
    root = ET.Element(root_name, {YEAR_ATTRIBUTE: str(year)})
    for contrato in contratos:
        _append_value(root, item_name, contrato, wrap_handlers)
    return root


def to_xml_string(root: ET.Element, indent: str = "    ") -> str:
    """Documento con declaración y sangría; atributos entre comillas dobles."""
    tree = ET.ElementTree(root)
    if indent:
        ET.indent(tree, space=indent)
    body = ET.tostring(root, encoding="unicode", short_empty_elements=True)
    return XML_DECLARATION + "\n" + body + "\n"


def write_document(
    contratos: Iterable[Mapping[str, Any]],
    output_dir: Union[str, Path],
    filename: str,
    year: Union[int, str] = DEFAULT_YEAR,
    wrap_handlers: Mapping[str, str] = WRAP_HANDLERS,
) -> Path:
    """Escribe <output_dir>/<filename>.xml (UTF-8) creando el directorio si no existe."""
    out_dir = Path(output_dir)
    if not out_dir.exists():
        logger.info("Creando directorio de salida %s", out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / (filename + OUTPUT_EXTENSION)
    root = build_document(contratos, year=year, wrap_handlers=wrap_handlers)
    path.write_text(to_xml_string(root), encoding="utf-8")
    logger.info("XML escrito: %s (%s contratos)", path, len(root))
    return path
