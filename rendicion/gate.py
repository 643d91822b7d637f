"""
Barrera de finalización de la lectura: un flag por tabla esperada.

Cuando todas las tablas han terminado de leerse dispara la continuación (proyección + XML)
una sola vez. Un fallo en cualquier tabla la bloquea definitivamente.
"""

import logging
from typing import Callable, Iterable, Optional

logger = logging.getLogger("rendicion.gate")

EXPECTED_TABLES = ("contratos", "adjudicatarios", "utes", "presupuestarias")


class CompletionGate:
    def __init__(self, expected: Iterable[str] = EXPECTED_TABLES, on_complete: Optional[Callable[[], None]] = None):
        self._done: dict[str, bool] = {name: False for name in expected}
        self._on_complete = on_complete
        self._fired = False
        self._failed: Optional[str] = None

    @property
    def pending(self) -> list[str]:
        """Tablas aún sin terminar, en el orden en que se declararon."""
        return [name for name, done in self._done.items() if not done]

    @property
    def is_complete(self) -> bool:
        return all(self._done.values())

    @property
    def fired(self) -> bool:
        return self._fired

    def mark_done(self, name: str) -> None:
        """Marca la tabla como leída. Lanza KeyError si no es una tabla esperada."""
        if name not in self._done:
            raise KeyError(name)
        if self._done[name]:
            return
        self._done[name] = True
        logger.info("Lectura de %s terminada", name)
        if self._failed is None and not self._fired and self.is_complete:
            self._fired = True
            logger.info("Lectura completa")
            if self._on_complete is not None:
                self._on_complete()

    def fail(self, name: str, error: BaseException) -> None:
        """Registra el fallo de una tabla y relanza el error: el gate ya no se dispara."""
        self._failed = name
        logger.error("Error leyendo %s: %s", name, error)
        raise error
