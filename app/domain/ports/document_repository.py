# app/domain/ports/document_repository.py
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Dict, Iterable, Optional

from app.domain.models.authorization import AuthorizationResult
from app.domain.models.document import BuyerInfo, Document, DocumentStatus
from app.domain.models.product import ProductStock


class DocumentRepository(ABC):
    """
    Contrato de persistencia de comprobantes, renglones, stock y secuencias.
    Ningún método confirma la transacción: eso lo decide quien invoca al caso de uso.
    """

    @abstractmethod
    def atomic(self) -> AbstractContextManager:
        """
        Abre un punto de guardado. Si el bloque lanza una excepción se
        deshace todo lo hecho dentro de él y la excepción se propaga.
        """
        pass

    @abstractmethod
    def find_by_id(self, document_id: int) -> Optional[Document]:
        pass

    @abstractmethod
    def lock_document(self, document_id: int) -> Optional[Document]:
        """Lee el comprobante bloqueando su fila hasta el fin de la transacción."""
        pass

    @abstractmethod
    def find_by_number(self, number: str) -> Optional[Document]:
        pass

    @abstractmethod
    def find_buyer(self, buyer_id: int) -> Optional[BuyerInfo]:
        pass

    # --- Numeración ---

    @abstractmethod
    def highest_number(self, prefix: str) -> Optional[str]:
        """Mayor número ya guardado que comienza con `prefix`, o None."""
        pass

    @abstractmethod
    def number_exists(self, number: str) -> bool:
        pass

    @abstractmethod
    def sequence_value(self, prefix: str) -> int:
        """Último entero emitido para el prefijo (0 si nunca se emitió)."""
        pass

    @abstractmethod
    def advance_sequence(self, prefix: str, value: int) -> None:
        """Avanza la secuencia a `value`. Nunca retrocede."""
        pass

    # --- Stock ---

    @abstractmethod
    def lock_stock(self, product_ids: Iterable[int]) -> Dict[int, ProductStock]:
        """
        Lee y bloquea las filas de producto hasta el fin de la transacción.
        Los productos inexistentes no aparecen en el resultado.
        """
        pass

    @abstractmethod
    def adjust_stock(self, product_id: int, delta: int) -> None:
        pass

    # --- Comprobantes ---

    @abstractmethod
    def add_document(self, document: Document) -> Document:
        """
        Inserta el comprobante y sus renglones.
        Lanza NumberAllocationConflict si el número ya existe.
        """
        pass

    @abstractmethod
    def record_authorization(self, document_id: int, result: AuthorizationResult) -> Document:
        """Guarda CAE, vencimiento y número de AFIP y pasa el comprobante a AUTHORIZED."""
        pass

    @abstractmethod
    def mark_rejected(self, document_id: int, reason: str) -> Document:
        pass

    @abstractmethod
    def update_status(self, document_id: int, status: DocumentStatus) -> Document:
        pass

    @abstractmethod
    def add_payment(self, document_id: int, amount: Decimal, method: Optional[str], notes: Optional[str]) -> Document:
        """Registra el pago y acumula el monto en `paid`. No cambia el estado."""
        pass
