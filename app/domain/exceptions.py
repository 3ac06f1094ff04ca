# app/domain/exceptions.py
from typing import List, Optional


class InvoicingError(Exception):
    """
    Excepción base del motor de facturación.
    Cada subclase define un `code` legible por máquina.
    """
    code: str = "INVOICING_ERROR"


class ValidationError(InvoicingError):
    """Datos inválidos para el comprobante. Se lanza antes de cualquier efecto."""
    code = "VALIDATION_ERROR"


class DocumentNotFound(InvoicingError):
    code = "DOCUMENT_NOT_FOUND"


class InsufficientStock(InvoicingError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, available: int, requested: int, description: Optional[str] = None):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        label = description or product_id
        super().__init__(
            f"Stock insuficiente para el producto {label}: disponible {available}, solicitado {requested}"
        )


class NumberAllocationConflict(InvoicingError):
    """El número calculado ya fue tomado por otra emisión."""
    code = "NUMBER_ALLOCATION_CONFLICT"

    def __init__(self, number: str):
        self.number = number
        super().__init__(f"El número {number} ya existe")


class AllocationFailed(InvoicingError):
    code = "ALLOCATION_FAILED"


class AuthorityUnavailable(InvoicingError):
    """AFIP no disponible: red, timeout, certificados o servidores caídos."""
    code = "AUTHORITY_UNAVAILABLE"


class CredentialsUnavailable(AuthorityUnavailable):
    code = "CREDENTIALS_UNAVAILABLE"


class AuthorityRejected(InvoicingError):
    """Rechazo de negocio informado por AFIP. No se reintenta."""
    code = "AUTHORITY_REJECTED"

    def __init__(self, message: str, error_codes: Optional[List[int]] = None):
        self.error_codes = error_codes or []
        super().__init__(message)


class CancellationConflict(InvoicingError):
    code = "CANCELLATION_CONFLICT"
