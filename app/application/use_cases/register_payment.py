# app/application/use_cases/register_payment.py
import logging
from decimal import Decimal
from typing import Optional

from app.domain.exceptions import DocumentNotFound, ValidationError
from app.domain.models.document import Document, DocumentStatus
from app.domain.ports.document_repository import DocumentRepository
from app.domain.services.tax_computation import round2

logger = logging.getLogger(__name__)


class RegisterPaymentUseCase:
    def __init__(self, document_repo: DocumentRepository):
        self.document_repo = document_repo

    def execute(
        self,
        document_id: int,
        amount: Decimal,
        method: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Document:
        """Acumula un pago; el comprobante pasa a PAID cuando lo pagado alcanza el total."""
        document = self.document_repo.find_by_id(document_id)
        if document is None:
            raise DocumentNotFound(f"Comprobante no encontrado: {document_id}")
        if document.status == DocumentStatus.CANCELLED:
            raise ValidationError(f"El comprobante {document.number} está anulado")

        amount = round2(amount)
        if amount <= 0:
            raise ValidationError(f"Monto de pago inválido: {amount}")

        document = self.document_repo.add_payment(document.id, amount, method, notes)
        if document.paid >= document.total and document.status != DocumentStatus.PAID:
            document = self.document_repo.update_status(document.id, DocumentStatus.PAID)
            logger.info(f"[{document.number}] Comprobante pagado en su totalidad.")
        return document
