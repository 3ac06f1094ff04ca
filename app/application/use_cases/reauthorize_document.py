# app/application/use_cases/reauthorize_document.py
import logging

from app.application.use_cases.authorize_document import AuthorizeDocumentUseCase, apply_outcome
from app.application.use_cases.issue_document import IssuanceResult
from app.domain.exceptions import DocumentNotFound, ValidationError
from app.domain.models.document import DocumentStatus
from app.domain.ports.document_repository import DocumentRepository
from app.domain.services import document_catalog

logger = logging.getLogger(__name__)


class ReauthorizeDocumentUseCase:
    """
    Reintento manual de autorización para un comprobante que quedó sin CAE
    (AFIP caída, timeout o rechazo ya corregido). Lo dispara un operador.
    """

    def __init__(self, document_repo: DocumentRepository, authorization: AuthorizeDocumentUseCase):
        self.document_repo = document_repo
        self.authorization = authorization

    def execute(self, document_id: int) -> IssuanceResult:
        document = self.document_repo.find_by_id(document_id)
        if document is None:
            raise DocumentNotFound(f"Comprobante no encontrado: {document_id}")
        if not document_catalog.requires_authorization(document.document_type):
            raise ValidationError(f"{document.document_type.value} no requiere autorización de AFIP")
        if document.is_authorized:
            raise ValidationError(f"El comprobante {document.number} ya tiene CAE {document.authorization_code}")
        if document.status == DocumentStatus.CANCELLED:
            raise ValidationError(f"El comprobante {document.number} está anulado")

        buyer = self.document_repo.find_buyer(document.buyer_id)
        if buyer is None:
            raise ValidationError(f"Cliente no encontrado: {document.buyer_id}")

        logger.info(f"[{document.number}] Reautorización manual solicitada.")
        outcome = self.authorization.execute(document, buyer)
        document = apply_outcome(self.document_repo, document, outcome)
        return IssuanceResult(document=document, authorization=outcome)
