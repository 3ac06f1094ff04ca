# app/application/services/document_number_allocator.py
import logging
from typing import Optional

import config
from app.domain.exceptions import AllocationFailed
from app.domain.ports.document_repository import DocumentRepository

logger = logging.getLogger(__name__)

NUMBER_WIDTH = 8


def format_number(prefix: str, value: int) -> str:
    return f"{prefix}{value:0{NUMBER_WIDTH}d}"


def parse_number(prefix: str, number: Optional[str]) -> int:
    """Extrae el entero de un número con prefijo ("FA-00000012" -> 12)."""
    if not number or not number.startswith(prefix):
        return 0
    try:
        return int(number[len(prefix):])
    except ValueError:
        logger.warning(f"Número con formato inesperado para el prefijo {prefix}: {number}")
        return 0


class DocumentNumberAllocator:
    """
    Genera el siguiente número visible de un comprobante para una familia de numeración.

    Toma el mayor entre el último número guardado y el contador de la secuencia,
    le suma uno y verifica que no exista justo antes de devolverlo. Si ya existe,
    prueba con el siguiente hasta `max_attempts` veces.
    """

    def __init__(self, document_repo: DocumentRepository, max_attempts: int = config.NUMBER_ALLOCATION_MAX_ATTEMPTS):
        self.document_repo = document_repo
        self.max_attempts = max_attempts

    def next_number(self, prefix: str) -> str:
        last_stored = parse_number(prefix, self.document_repo.highest_number(prefix))
        last_issued = max(last_stored, self.document_repo.sequence_value(prefix))
        candidate = last_issued + 1

        for attempt in range(1, self.max_attempts + 1):
            number = format_number(prefix, candidate)
            if not self.document_repo.number_exists(number):
                self.document_repo.advance_sequence(prefix, candidate)
                logger.info(f"[{number}] Número asignado (intento {attempt}).")
                return number
            logger.warning(f"Número {number} ya existe, intentando con el siguiente.")
            candidate += 1

        raise AllocationFailed(
            f"No se pudo asignar un número para el prefijo {prefix} tras {self.max_attempts} intentos"
        )
