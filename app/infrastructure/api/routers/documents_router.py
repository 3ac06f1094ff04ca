# app/infrastructure/api/routers/documents_router.py
import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from app.application.use_cases.cancel_document import CancelDocumentUseCase
from app.application.use_cases.issue_document import IssuanceResult, IssueDocumentUseCase
from app.application.use_cases.register_payment import RegisterPaymentUseCase
from app.domain.exceptions import InvoicingError
from app.domain.models.document import Document, DocumentType, LineRequest
from app.domain.services import document_catalog
from app.infrastructure.api.dependencies import (
    get_cancel_use_case,
    get_document_repository,
    get_issue_use_case,
    get_payment_use_case,
)
from app.infrastructure.api.errors import to_http
from app.infrastructure.celery.worker import celery_app
from app.infrastructure.persistence.document_repository_adapter import SQLAlchemyDocumentRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/comprobantes", tags=["Comprobantes"])


class LineIn(BaseModel):
    producto_id: int
    cantidad: int
    precio_unitario: Decimal
    alicuota_iva: Optional[Decimal] = None


class IssueRequest(BaseModel):
    cliente_id: int
    tipo: DocumentType
    items: List[LineIn] = Field(default_factory=list)
    comprobante_asociado_id: Optional[int] = None


class PaymentRequest(BaseModel):
    monto: Decimal
    metodo_pago: Optional[str] = None
    observaciones: Optional[str] = None


@router.post("/", status_code=201, response_model=IssuanceResult, summary="Emitir un comprobante")
def issue_document(request: IssueRequest, use_case: IssueDocumentUseCase = Depends(get_issue_use_case)):
    """
    Guarda el comprobante, mueve el stock y, si corresponde, pide el CAE.
    Si AFIP no responde o rechaza, el comprobante queda guardado igual y el
    resultado de la autorización viaja en `authorization`.
    """
    lines = [
        LineRequest(
            product_id=item.producto_id,
            quantity=item.cantidad,
            unit_price=item.precio_unitario,
            vat_rate=item.alicuota_iva,
        )
        for item in request.items
    ]
    try:
        return use_case.execute(request.cliente_id, lines, request.tipo, request.comprobante_asociado_id)
    except InvoicingError as e:
        raise to_http(e) from e


@router.get("/{numero}", response_model=Document, summary="Consultar un comprobante por número")
def get_document(numero: str, document_repo: SQLAlchemyDocumentRepository = Depends(get_document_repository)):
    document = document_repo.find_by_number(numero)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Comprobante no encontrado: {numero}")
    return document


@router.post("/{document_id}/anular", response_model=Document, summary="Anular con nota de crédito")
def cancel_document(document_id: int, use_case: CancelDocumentUseCase = Depends(get_cancel_use_case)):
    try:
        return use_case.execute(document_id)
    except InvoicingError as e:
        raise to_http(e) from e


@router.post("/{document_id}/pagos", response_model=Document, summary="Registrar un pago")
def register_payment(
    document_id: int,
    request: PaymentRequest,
    use_case: RegisterPaymentUseCase = Depends(get_payment_use_case),
):
    try:
        return use_case.execute(document_id, request.monto, request.metodo_pago, request.observaciones)
    except InvoicingError as e:
        raise to_http(e) from e


@router.post("/{document_id}/reautorizar", status_code=202, summary="Reintentar la autorización en segundo plano")
def reauthorize_document(
    document_id: int,
    document_repo: SQLAlchemyDocumentRepository = Depends(get_document_repository),
):
    document = document_repo.find_by_id(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Comprobante no encontrado: {document_id}")
    if not document_catalog.requires_authorization(document.document_type):
        raise HTTPException(status_code=400, detail=f"{document.document_type.value} no requiere autorización")
    if document.is_authorized:
        raise HTTPException(status_code=409, detail=f"El comprobante {document.number} ya tiene CAE")

    celery_app.send_task("tasks.reauthorize_document", args=[document.id])
    logger.info(f"[{document.number}] Reautorización encolada.")
    return {"status": "reauthorization_queued", "document_id": document.id, "numero": document.number}
