# app/application/use_cases/issue_document.py
import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel

import config
from app.application.services.document_number_allocator import DocumentNumberAllocator
from app.application.use_cases.authorize_document import AuthorizeDocumentUseCase, apply_outcome
from app.domain.exceptions import (
    AllocationFailed,
    DocumentNotFound,
    InsufficientStock,
    NumberAllocationConflict,
    ValidationError,
)
from app.domain.models.authorization import AuthorizationOutcome
from app.domain.models.document import (
    BuyerInfo,
    Document,
    DocumentLine,
    DocumentStatus,
    DocumentType,
    LineRequest,
)
from app.domain.ports.document_repository import DocumentRepository
from app.domain.services import document_catalog, receiver_resolution
from app.domain.services.document_catalog import DocumentKind, DocumentTypeInfo, StockEffect
from app.domain.services.tax_computation import round2

logger = logging.getLogger(__name__)


class IssuanceResult(BaseModel):
    document: Document
    authorization: Optional[AuthorizationOutcome] = None


class IssueDocumentUseCase:
    """
    Emite un comprobante de venta.

    Pasos 1 a 4 (stock, número, alta del comprobante, movimiento de stock) se
    ejecutan en un único punto de guardado: o se aplican todos o ninguno.
    La autorización de AFIP (paso 5) nunca deshace lo anterior.
    """

    def __init__(
        self,
        document_repo: DocumentRepository,
        number_allocator: DocumentNumberAllocator,
        authorization: AuthorizeDocumentUseCase,
        default_vat_rate: Decimal = config.DEFAULT_VAT_RATE,
        max_allocation_attempts: int = config.NUMBER_ALLOCATION_MAX_ATTEMPTS,
    ):
        self.document_repo = document_repo
        self.number_allocator = number_allocator
        self.authorization = authorization
        self.default_vat_rate = default_vat_rate
        self.max_allocation_attempts = max_allocation_attempts

    def execute(
        self,
        buyer_id: int,
        lines: List[LineRequest],
        document_type: DocumentType,
        associated_document_id: Optional[int] = None,
    ) -> IssuanceResult:
        buyer = self.document_repo.find_buyer(buyer_id)
        if buyer is None:
            raise ValidationError(f"Cliente no encontrado: {buyer_id}")

        document = self.create_document(buyer, lines, document_type, associated_document_id)
        if not document_catalog.requires_authorization(document.document_type):
            return IssuanceResult(document=document)

        outcome = self.authorization.execute(document, buyer)
        document = apply_outcome(self.document_repo, document, outcome)
        return IssuanceResult(document=document, authorization=outcome)

    def create_document(
        self,
        buyer: BuyerInfo,
        lines: List[LineRequest],
        document_type: DocumentType,
        associated_document_id: Optional[int] = None,
    ) -> Document:
        """Valida y guarda el comprobante en estado PENDING, moviendo el stock."""
        info = document_catalog.get_info(document_type)
        receiver_resolution.validate_buyer(info.document_type, buyer)
        original_info = self._validate_associated(info, associated_document_id)
        stock_effect = self._stock_effect(info, original_info)
        document_lines = self._build_lines(lines)
        total = round2(sum((line.subtotal for line in document_lines), Decimal("0")))

        with self.document_repo.atomic():
            self._check_stock(info, document_lines)
            document = self._insert_with_number(info, buyer, document_lines, total, associated_document_id)
            if stock_effect != StockEffect.NONE:
                for line in document_lines:
                    self.document_repo.adjust_stock(line.product_id, int(stock_effect) * line.quantity)

        logger.info(
            f"[{document.number}] Comprobante {info.document_type.value} creado por {document.total} "
            f"({len(document_lines)} renglones)."
        )
        return document

    def _build_lines(self, lines: List[LineRequest]) -> List[DocumentLine]:
        if not lines:
            raise ValidationError("Se requiere al menos un producto")

        document_lines = []
        for line in lines:
            if line.quantity <= 0:
                raise ValidationError(f"Cantidad inválida para el producto {line.product_id}: {line.quantity}")
            if line.unit_price < 0:
                raise ValidationError(f"Precio inválido para el producto {line.product_id}: {line.unit_price}")
            unit_price = round2(line.unit_price)
            document_lines.append(
                DocumentLine(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    vat_rate=line.vat_rate if line.vat_rate is not None else self.default_vat_rate,
                    subtotal=round2(unit_price * line.quantity),
                )
            )
        return document_lines

    def _validate_associated(
        self, info: DocumentTypeInfo, associated_document_id: Optional[int]
    ) -> Optional[DocumentTypeInfo]:
        if associated_document_id is None:
            if info.document_type == DocumentType.NOTA_CREDITO_REMITO:
                raise ValidationError("La nota de crédito de remito requiere el remito asociado")
            return None
        if not info.is_note:
            raise ValidationError(f"{info.document_type.value} no admite comprobante asociado")

        original = self.document_repo.find_by_id(associated_document_id)
        if original is None:
            raise DocumentNotFound(f"Comprobante asociado no encontrado: {associated_document_id}")
        original_info = document_catalog.get_info(original.document_type)
        if info.family is None:
            if original_info.kind != DocumentKind.DELIVERY_NOTE:
                raise ValidationError("El comprobante asociado no es un remito")
        elif original_info.family != info.family or (
            original_info.is_note and not self._credits_debit_note(info, original_info)
        ):
            raise ValidationError(
                f"{info.document_type.value} no puede asociarse a {original_info.document_type.value}"
            )
        return original_info

    @staticmethod
    def _credits_debit_note(info: DocumentTypeInfo, original_info: DocumentTypeInfo) -> bool:
        return info.kind == DocumentKind.CREDIT_NOTE and original_info.kind == DocumentKind.DEBIT_NOTE

    @staticmethod
    def _stock_effect(info: DocumentTypeInfo, original_info: Optional[DocumentTypeInfo]) -> StockEffect:
        # Anular una nota de débito no devuelve mercadería: la nota de débito nunca la movió
        if original_info is not None and IssueDocumentUseCase._credits_debit_note(info, original_info):
            return StockEffect.NONE
        return info.stock_effect

    def _check_stock(self, info: DocumentTypeInfo, lines: List[DocumentLine]) -> None:
        requested: Dict[int, int] = defaultdict(int)
        for line in lines:
            requested[line.product_id] += line.quantity

        stock = self.document_repo.lock_stock(requested.keys())
        for product_id, quantity in requested.items():
            product = stock.get(product_id)
            if product is None:
                raise ValidationError(f"Producto no encontrado: {product_id}")
            if info.stock_effect == StockEffect.CONSUME and product.stock < quantity:
                raise InsufficientStock(product_id, product.stock, quantity, product.description)

    def _insert_with_number(
        self,
        info: DocumentTypeInfo,
        buyer: BuyerInfo,
        lines: List[DocumentLine],
        total: Decimal,
        associated_document_id: Optional[int],
    ) -> Document:
        for _ in range(self.max_allocation_attempts):
            number = self.number_allocator.next_number(info.prefix)
            document = Document(
                number=number,
                document_type=info.document_type,
                issue_date=date.today(),
                buyer_id=buyer.id,
                status=DocumentStatus.PENDING,
                total=total,
                associated_document_id=associated_document_id,
                lines=lines,
            )
            try:
                return self.document_repo.add_document(document)
            except NumberAllocationConflict as e:
                logger.warning(f"[{number}] Conflicto al guardar el número, se reintenta: {e}")

        raise AllocationFailed(
            f"No se pudo guardar el comprobante {info.document_type.value} tras {self.max_allocation_attempts} intentos"
        )
