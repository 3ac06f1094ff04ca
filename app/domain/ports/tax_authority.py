# app/domain/ports/tax_authority.py
from abc import ABC, abstractmethod

from app.domain.models.authorization import AuthorizationPayload, AuthorizationResult, ServerStatus


class TaxAuthority(ABC):
    """
    Puerto hacia el web service de facturación electrónica de AFIP (WSFE).

    Los errores de red, certificados o token se informan como AuthorityUnavailable;
    los rechazos de negocio como AuthorityRejected.
    """

    @abstractmethod
    def server_status(self) -> ServerStatus:
        pass

    @abstractmethod
    def last_voucher_number(self, sales_point: int, type_code: int) -> int:
        """Último número autorizado para el punto de venta y tipo de comprobante."""
        pass

    @abstractmethod
    def authorize(self, payload: AuthorizationPayload) -> AuthorizationResult:
        """Solicita el CAE para un único comprobante."""
        pass

    @abstractmethod
    def force_reauthentication(self) -> None:
        """Descarta el ticket de acceso vigente y solicita uno nuevo."""
        pass

    @abstractmethod
    def reset(self) -> None:
        """Olvida la sesión y las credenciales cargadas."""
        pass
