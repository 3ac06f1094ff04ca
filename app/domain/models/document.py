# app/domain/models/document.py
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentType(str, Enum):
    FACTURA_A = "FACTURA_A"
    FACTURA_B = "FACTURA_B"
    FACTURA_C = "FACTURA_C"
    NOTA_CREDITO_A = "NOTA_CREDITO_A"
    NOTA_CREDITO_B = "NOTA_CREDITO_B"
    NOTA_CREDITO_C = "NOTA_CREDITO_C"
    NOTA_DEBITO_A = "NOTA_DEBITO_A"
    NOTA_DEBITO_B = "NOTA_DEBITO_B"
    NOTA_DEBITO_C = "NOTA_DEBITO_C"
    REMITO = "REMITO"
    NOTA_CREDITO_REMITO = "NOTA_CREDITO_REMITO"


class DocumentStatus(str, Enum):
    PENDING = "PENDING"
    AUTHORIZED = "AUTHORIZED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class TaxCondition(str, Enum):
    RESPONSABLE_INSCRIPTO = "RESPONSABLE_INSCRIPTO"
    MONOTRIBUTO = "MONOTRIBUTO"
    EXENTO = "EXENTO"
    CONSUMIDOR_FINAL = "CONSUMIDOR_FINAL"


class BuyerInfo(BaseModel):
    """Datos del cliente necesarios para emitir y autorizar un comprobante."""
    id: int
    name: str
    tax_id: Optional[str] = None
    tax_condition: TaxCondition = TaxCondition.CONSUMIDOR_FINAL

    model_config = ConfigDict(from_attributes=True)


class LineRequest(BaseModel):
    """Renglón solicitado por el vendedor, antes de persistirse."""
    product_id: int
    quantity: int
    unit_price: Decimal
    vat_rate: Optional[Decimal] = None


class DocumentLine(BaseModel):
    id: Optional[int] = None
    product_id: int
    quantity: int
    unit_price: Decimal
    vat_rate: Decimal
    subtotal: Decimal

    model_config = ConfigDict(from_attributes=True)


class Document(BaseModel):
    """
    Comprobante emitido (factura, nota de crédito/débito o remito).
    Los campos de autorización se completan sólo tras una respuesta exitosa de AFIP.
    """
    id: Optional[int] = None
    number: str
    document_type: DocumentType
    issue_date: date
    buyer_id: int
    status: DocumentStatus = DocumentStatus.PENDING
    total: Decimal
    paid: Decimal = Decimal("0.00")

    # --- Campos de AFIP ---
    authorization_code: Optional[str] = None
    authorization_expiry: Optional[date] = None
    voucher_number: Optional[int] = None
    sales_point: Optional[int] = None
    authorization_rejected: bool = False
    rejection_reason: Optional[str] = None

    associated_document_id: Optional[int] = None
    lines: List[DocumentLine] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_authorized(self) -> bool:
        return self.authorization_code is not None
