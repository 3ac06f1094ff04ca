# app/domain/services/receiver_resolution.py
import re
from typing import Tuple

from app.domain.exceptions import ValidationError
from app.domain.models.document import BuyerInfo, DocumentType, TaxCondition
from app.domain.services import document_catalog

# Tipos de documento del receptor (FEParamGetTiposDoc)
DOC_TYPE_CUIT = 80
DOC_TYPE_DNI = 96
DOC_TYPE_SIN_IDENTIFICAR = 99

# Condición frente al IVA del receptor (CondicionIVAReceptorId)
VAT_CONDITION_IDS = {
    TaxCondition.RESPONSABLE_INSCRIPTO: 1,
    TaxCondition.EXENTO: 4,
    TaxCondition.CONSUMIDOR_FINAL: 5,
    TaxCondition.MONOTRIBUTO: 6,
}

_REGISTERED = (TaxCondition.RESPONSABLE_INSCRIPTO, TaxCondition.MONOTRIBUTO, TaxCondition.EXENTO)
_CUIT_WEIGHTS = (5, 4, 3, 2, 7, 6, 5, 4, 3, 2)


def clean_tax_id(raw) -> str:
    return re.sub(r"[^0-9]", "", raw or "")


def is_valid_cuit(digits: str) -> bool:
    """Valida longitud y dígito verificador (módulo 11) de un CUIT/CUIL."""
    if len(digits) != 11 or not digits.isdigit():
        return False
    total = sum(int(d) * w for d, w in zip(digits[:10], _CUIT_WEIGHTS))
    check = 11 - (total % 11)
    if check == 11:
        check = 0
    elif check == 10:
        return False
    return check == int(digits[10])


def _is_dni(digits: str) -> bool:
    return 7 <= len(digits) <= 8


def validate_buyer(document_type: DocumentType, buyer: BuyerInfo) -> None:
    """
    Verifica que el cliente pueda recibir el tipo de comprobante pedido.
    Lanza ValidationError antes de cualquier efecto sobre la base.
    """
    info = document_catalog.get_info(document_type)
    if info.family is None:
        return

    digits = clean_tax_id(buyer.tax_id)
    if info.family == "A":
        if buyer.tax_condition != TaxCondition.RESPONSABLE_INSCRIPTO:
            raise ValidationError(
                f"Para comprobantes A el cliente debe ser Responsable Inscripto. "
                f"La situación actual del cliente es \"{buyer.tax_condition.value}\""
            )
        if not is_valid_cuit(digits):
            raise ValidationError(f"CUIT inválido para comprobante A: {buyer.tax_id!r}")
        return

    if digits and not (is_valid_cuit(digits) or _is_dni(digits)):
        raise ValidationError(f"Documento del cliente inválido: {buyer.tax_id!r}")


def resolve_receiver(document_type: DocumentType, buyer: BuyerInfo) -> Tuple[int, int]:
    """Devuelve (DocTipo, DocNro) del receptor según su condición y el tipo de comprobante."""
    validate_buyer(document_type, buyer)
    info = document_catalog.get_info(document_type)
    digits = clean_tax_id(buyer.tax_id)

    if info.family == "A":
        return DOC_TYPE_CUIT, int(digits)
    if buyer.tax_condition in _REGISTERED and is_valid_cuit(digits):
        return DOC_TYPE_CUIT, int(digits)
    if _is_dni(digits):
        return DOC_TYPE_DNI, int(digits)
    if is_valid_cuit(digits):
        return DOC_TYPE_CUIT, int(digits)
    return DOC_TYPE_SIN_IDENTIFICAR, 0


def receiver_vat_condition(document_type: DocumentType, buyer: BuyerInfo) -> int:
    if document_catalog.get_info(document_type).family == "A":
        return VAT_CONDITION_IDS[TaxCondition.RESPONSABLE_INSCRIPTO]
    return VAT_CONDITION_IDS[buyer.tax_condition]
