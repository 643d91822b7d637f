"""
Fixtures para tests de la conversión. Los libros de prueba se generan con pandas (openpyxl)
en tmp_path; no se usan ficheros reales.
"""

import pandas as pd
import pytest

from rendicion.loader import Tables

CONTRATOS = [
    {
        "RefContrato": "C1",
        "FechaAdjudicacion": "2016-03-01",
        "FechaFormalizacion": "2016-03-15",
        "DescTipoContrato": "Servicios",
        "DescFormaTramitacion": "Ordinaria",
        "DescLegislacionAplicable": "TRLCSP",
        "DescProcAdjudicacion": "Abierto",
        "Sara": "S",
        "ValorEstimado": 1234.5,
        "NumLotes": 2,
        "Objeto": "Limpieza de edificios",
        "ImporteAdjudicacion": 1000000,
        "Impuestos": 210000,
        "PresupuestoLicitacion": "Sin presupuesto",
        "PlazoEjecucionMeses": 12,
    },
    {
        "RefContrato": "C2",
        "FechaAdjudicacion": "2016-05-02",
        "FechaFormalizacion": "2016-05-20",
        "DescTipoContrato": "Obras",
        "DescFormaTramitacion": "Urgente",
        "DescLegislacionAplicable": "TRLCSP",
        "DescProcAdjudicacion": "Negociado",
        "Sara": "N",
        "ValorEstimado": 500,
        "NumLotes": 1,
        "Objeto": "Reforma de aseos",
        "ImporteAdjudicacion": 450.25,
        "Impuestos": 94.55,
        "PresupuestoLicitacion": 500,
        "PlazoEjecucionMeses": 3,
    },
]

ADJUDICATARIOS = [
    {"RefContrato": "C1", "Extranjero": "N", "Cif": "A1", "Nombre": "UTE Limpiezas", "Ute": True},
    {"RefContrato": "C2", "Extranjero": "N", "Cif": "B2", "Nombre": "Obras SL", "Ute": False},
    {"RefContrato": "C1", "Extranjero": "S", "Cif": "X9", "Nombre": "Cleaning Ltd", "Ute": False},
    {"RefContrato": "C9", "Extranjero": "N", "Cif": "Z0", "Nombre": "Huérfano SA", "Ute": False},
]

UTES = [
    {"CIF Adjudicatario": "A1", "Extranjero": "N", "Cif": "E1", "Nombre": "Socio Uno SA"},
    {"CIF Adjudicatario": "A1", "Extranjero": "N", "Cif": "E2", "Nombre": "Socio Dos SL"},
    {"CIF Adjudicatario": "B2", "Extranjero": "N", "Cif": "E3", "Nombre": "No UTE"},
]

PRESUPUESTARIAS = [
    {"RefContrato": "C1", "Descripcion": "22700 Limpieza", "Importe": 1234567.891},
    {"RefContrato": "C2", "Descripcion": "63200 Edificios", "Importe": "pendiente"},
]


def write_workbook(path, sheets):
    """Escribe un .xlsx con una hoja por entrada de sheets (nombre -> lista de filas)."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, index=False)
    return path


@pytest.fixture
def sample_sheets():
    return {
        "Contratos": CONTRATOS,
        "Adjudicatarios": ADJUDICATARIOS,
        "Utes": UTES,
        "Presupuestarias": PRESUPUESTARIAS,
    }


@pytest.fixture
def sample_workbook(tmp_path, sample_sheets):
    return write_workbook(tmp_path / "libro.xlsx", sample_sheets)


@pytest.fixture
def sample_tables():
    """Tablas ya cargadas (sin pasar por el libro)."""
    return Tables(
        contratos=[dict(r) for r in CONTRATOS],
        adjudicatarios=[dict(r) for r in ADJUDICATARIOS],
        utes=[dict(r) for r in UTES],
        presupuestarias=[dict(r) for r in PRESUPUESTARIAS],
    )


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Sin variables RENDICION_* ni .env: se usan los valores por defecto."""
    for name in (
        "RENDICION_INPUT_PATH",
        "RENDICION_INPUT_FILENAME",
        "RENDICION_OUTPUT_PATH",
        "RENDICION_OUTPUT_FILENAME",
        "RENDICION_YEAR",
        "RENDICION_DELIMITER",
        "RENDICION_LOAD_WORKERS",
        "RENDICION_LOCALE",
        "RENDICION_THOUSANDS_SEP",
        "RENDICION_DECIMAL_POINT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
