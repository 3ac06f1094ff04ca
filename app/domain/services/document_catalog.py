# app/domain/services/document_catalog.py
"""
Tabla fija de tipos de comprobante: prefijo de numeración, código AFIP,
familia (A/B/C), clase de comprobante y efecto sobre el stock.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from app.domain.exceptions import ValidationError
from app.domain.models.document import DocumentType


class DocumentKind(str, Enum):
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"
    DELIVERY_NOTE = "DELIVERY_NOTE"


class StockEffect(int, Enum):
    CONSUME = -1
    RETURN = 1
    NONE = 0


@dataclass(frozen=True)
class DocumentTypeInfo:
    document_type: DocumentType
    prefix: str
    afip_code: int
    kind: DocumentKind
    family: Optional[str]
    requires_authorization: bool
    stock_effect: StockEffect

    @property
    def is_note(self) -> bool:
        return self.kind in (DocumentKind.CREDIT_NOTE, DocumentKind.DEBIT_NOTE)


_CATALOG: Dict[DocumentType, DocumentTypeInfo] = {
    info.document_type: info
    for info in (
        DocumentTypeInfo(DocumentType.FACTURA_A, "FA-", 1, DocumentKind.INVOICE, "A", True, StockEffect.CONSUME),
        DocumentTypeInfo(DocumentType.FACTURA_B, "FB-", 6, DocumentKind.INVOICE, "B", True, StockEffect.CONSUME),
        DocumentTypeInfo(DocumentType.FACTURA_C, "FC-", 11, DocumentKind.INVOICE, "C", True, StockEffect.CONSUME),
        DocumentTypeInfo(DocumentType.NOTA_CREDITO_A, "NCA-", 3, DocumentKind.CREDIT_NOTE, "A", True, StockEffect.RETURN),
        DocumentTypeInfo(DocumentType.NOTA_CREDITO_B, "NCB-", 8, DocumentKind.CREDIT_NOTE, "B", True, StockEffect.RETURN),
        DocumentTypeInfo(DocumentType.NOTA_CREDITO_C, "NCC-", 13, DocumentKind.CREDIT_NOTE, "C", True, StockEffect.RETURN),
        DocumentTypeInfo(DocumentType.NOTA_DEBITO_A, "NDA-", 2, DocumentKind.DEBIT_NOTE, "A", True, StockEffect.NONE),
        DocumentTypeInfo(DocumentType.NOTA_DEBITO_B, "NDB-", 7, DocumentKind.DEBIT_NOTE, "B", True, StockEffect.NONE),
        DocumentTypeInfo(DocumentType.NOTA_DEBITO_C, "NDC-", 12, DocumentKind.DEBIT_NOTE, "C", True, StockEffect.NONE),
        DocumentTypeInfo(DocumentType.REMITO, "R-", 91, DocumentKind.DELIVERY_NOTE, None, False, StockEffect.CONSUME),
        # Anulación de remitos: no es un comprobante fiscal, no tiene código propio en AFIP
        DocumentTypeInfo(DocumentType.NOTA_CREDITO_REMITO, "NCR-", 0, DocumentKind.CREDIT_NOTE, None, False, StockEffect.RETURN),
    )
}

_INVOICE_BY_FAMILY = {
    "A": DocumentType.FACTURA_A,
    "B": DocumentType.FACTURA_B,
    "C": DocumentType.FACTURA_C,
}

_CREDIT_NOTE_BY_FAMILY = {
    "A": DocumentType.NOTA_CREDITO_A,
    "B": DocumentType.NOTA_CREDITO_B,
    "C": DocumentType.NOTA_CREDITO_C,
}


def get_info(document_type: DocumentType) -> DocumentTypeInfo:
    return _CATALOG[DocumentType(document_type)]


def afip_code(document_type: DocumentType) -> int:
    return get_info(document_type).afip_code


def prefix_for(document_type: DocumentType) -> str:
    return get_info(document_type).prefix


def requires_authorization(document_type: DocumentType) -> bool:
    return get_info(document_type).requires_authorization


def invoice_for_family(family: str) -> DocumentType:
    """Factura de la misma familia (NCA -> FA). Se usa para el comprobante asociado."""
    return _INVOICE_BY_FAMILY[family]


def credit_note_for(document_type: DocumentType) -> DocumentType:
    """Nota de crédito que anula al comprobante dado."""
    info = get_info(document_type)
    if info.kind == DocumentKind.DELIVERY_NOTE:
        return DocumentType.NOTA_CREDITO_REMITO
    if info.kind in (DocumentKind.INVOICE, DocumentKind.DEBIT_NOTE) and info.family:
        return _CREDIT_NOTE_BY_FAMILY[info.family]
    raise ValidationError(f"Tipo de comprobante no soportado para anulación: {info.document_type.value}")
