# app/domain/models/authorization.py
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class VatBreakdown(BaseModel):
    """Alícuota de IVA tal como la espera AFIP (Id, BaseImp, Importe)."""
    aliquot_id: int
    base_amount: Decimal
    amount: Decimal


class AssociatedVoucher(BaseModel):
    """Comprobante asociado, obligatorio en notas de crédito y débito."""
    type_code: int
    sales_point: int
    number: int
    issuer_tax_id: Optional[str] = None
    issue_date: Optional[date] = None


class AuthorizationPayload(BaseModel):
    sales_point: int
    type_code: int
    concept: int = 1  # 1 = Productos
    receiver_doc_type: int
    receiver_doc_number: int
    receiver_vat_condition: Optional[int] = None
    voucher_from: int
    voucher_to: int
    issue_date: date
    net_amount: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    vat: List[VatBreakdown] = Field(default_factory=list)
    associated: List[AssociatedVoucher] = Field(default_factory=list)

    def to_afip(self) -> dict:
        """Arma el detalle FECAEDetRequest con los nombres de campo de AFIP."""
        data = {
            "Concepto": self.concept,
            "DocTipo": self.receiver_doc_type,
            "DocNro": self.receiver_doc_number,
            "CbteDesde": self.voucher_from,
            "CbteHasta": self.voucher_to,
            "CbteFch": self.issue_date.strftime("%Y%m%d"),
            "ImpTotal": float(self.total_amount),
            "ImpTotConc": 0,
            "ImpNeto": float(self.net_amount),
            "ImpOpEx": 0,
            "ImpIVA": float(self.vat_amount),
            "ImpTrib": 0,
            "MonId": "PES",
            "MonCotiz": 1,
        }
        if self.receiver_vat_condition is not None:
            data["CondicionIVAReceptorId"] = self.receiver_vat_condition
        if self.vat:
            data["Iva"] = {
                "AlicIva": [
                    {"Id": v.aliquot_id, "BaseImp": float(v.base_amount), "Importe": float(v.amount)}
                    for v in self.vat
                ]
            }
        if self.associated:
            asociados = []
            for a in self.associated:
                item = {"Tipo": a.type_code, "PtoVta": a.sales_point, "Nro": a.number}
                if a.issuer_tax_id:
                    item["Cuit"] = a.issuer_tax_id
                if a.issue_date:
                    item["CbteFch"] = a.issue_date.strftime("%Y%m%d")
                asociados.append(item)
            data["CbtesAsoc"] = {"CbteAsoc": asociados}
        return data


class AuthorizationResult(BaseModel):
    code: str
    expiry: Optional[date] = None
    voucher_number: int
    sales_point: int
    observations: List[str] = Field(default_factory=list)


class AuthorizationErrorKind(str, Enum):
    UNAVAILABLE = "UNAVAILABLE"
    REJECTED = "REJECTED"
    ALTERNATE_CLASS_REQUIRED = "ALTERNATE_CLASS_REQUIRED"
    INVALID = "INVALID"


class AuthorizationOutcome(BaseModel):
    """
    Resultado etiquetado de una autorización: `result` si fue exitosa,
    o `error_kind` + `message` si no. Los llamadores deciden según el tipo de error.
    """
    result: Optional[AuthorizationResult] = None
    error_kind: Optional[AuthorizationErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, result: AuthorizationResult) -> "AuthorizationOutcome":
        return cls(result=result)

    @classmethod
    def failure(cls, kind: AuthorizationErrorKind, message: str) -> "AuthorizationOutcome":
        return cls(error_kind=kind, message=message)

    @property
    def ok(self) -> bool:
        return self.result is not None

    @property
    def is_rejection(self) -> bool:
        return self.error_kind in (
            AuthorizationErrorKind.REJECTED,
            AuthorizationErrorKind.ALTERNATE_CLASS_REQUIRED,
            AuthorizationErrorKind.INVALID,
        )


class ServerStatus(BaseModel):
    app_server: Optional[str] = None
    db_server: Optional[str] = None
    auth_server: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.app_server == "OK" and self.db_server == "OK" and self.auth_server == "OK"
