# app/application/use_cases/cancel_document.py
import logging

from app.application.use_cases.authorize_document import AuthorizeDocumentUseCase
from app.application.use_cases.issue_document import IssueDocumentUseCase
from app.domain.exceptions import (
    AuthorityRejected,
    AuthorityUnavailable,
    CancellationConflict,
    DocumentNotFound,
    ValidationError,
)
from app.domain.models.authorization import AuthorizationErrorKind
from app.domain.models.document import Document, DocumentStatus, LineRequest
from app.domain.ports.document_repository import DocumentRepository
from app.domain.services import document_catalog

logger = logging.getLogger(__name__)


class CancelDocumentUseCase:
    """
    Anula un comprobante emitiendo una nota de crédito por el total.

    El comprobante original pasa a CANCELLED sólo si la nota de crédito quedó
    autorizada. Si AFIP falla, se deshace la nota de crédito completa (número,
    renglones y devolución de stock) y el error se propaga al llamador.
    """

    def __init__(
        self,
        document_repo: DocumentRepository,
        issuance: IssueDocumentUseCase,
        authorization: AuthorizeDocumentUseCase,
    ):
        self.document_repo = document_repo
        self.issuance = issuance
        self.authorization = authorization

    def execute(self, document_id: int) -> Document:
        with self.document_repo.atomic():
            # El original queda bloqueado: dos anulaciones simultáneas se serializan aquí
            original = self.document_repo.lock_document(document_id)
            if original is None:
                raise DocumentNotFound(f"Comprobante no encontrado: {document_id}")
            if original.status == DocumentStatus.CANCELLED:
                raise CancellationConflict(f"El comprobante {original.number} ya está anulado")

            credit_type = document_catalog.credit_note_for(original.document_type)
            needs_authorization = document_catalog.requires_authorization(credit_type)
            if needs_authorization and not original.is_authorized:
                raise ValidationError(f"El comprobante {original.number} no tiene CAE asignado")

            buyer = self.document_repo.find_buyer(original.buyer_id)
            if buyer is None:
                raise ValidationError(f"Cliente no encontrado: {original.buyer_id}")

            lines = [
                LineRequest(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    vat_rate=line.vat_rate,
                )
                for line in original.lines
            ]

            logger.info(f"[{original.number}] Iniciando anulación con {credit_type.value}.")
            credit_note = self.issuance.create_document(buyer, lines, credit_type, associated_document_id=original.id)
            if credit_note.total != original.total:
                raise ValidationError(
                    f"El total de la nota de crédito ({credit_note.total}) no coincide con el original ({original.total})"
                )

            if needs_authorization:
                outcome = self.authorization.execute(credit_note, buyer)
                if not outcome.ok:
                    logger.error(
                        f"[{original.number}] No se autorizó la nota de crédito {credit_note.number}; "
                        f"se deshace la anulación: {outcome.message}"
                    )
                    if outcome.error_kind == AuthorizationErrorKind.UNAVAILABLE:
                        raise AuthorityUnavailable(outcome.message)
                    raise AuthorityRejected(outcome.message)
                credit_note = self.document_repo.record_authorization(credit_note.id, outcome.result)

            self.document_repo.update_status(original.id, DocumentStatus.CANCELLED)

        logger.info(f"[{original.number}] Anulado mediante {credit_note.number}.")
        return credit_note
