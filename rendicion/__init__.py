"""Conversión de libros de rendición de contratos (XLSX) a XML."""

__version__ = "1.0.0"
