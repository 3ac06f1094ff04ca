# app/domain/ports/credential_provider.py
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

from app.domain.exceptions import CredentialsUnavailable
from app.domain.models.credential import CredentialKind

logger = logging.getLogger(__name__)


class CredentialProvider(ABC):
    """Puerto para obtener el certificado y la clave privada de AFIP del entorno activo."""

    @abstractmethod
    def resolve(self, kind: CredentialKind, environment: Optional[str]) -> str:
        """
        Devuelve el contenido PEM del certificado o la clave.
        Lanza CredentialsUnavailable si no se puede resolver el par completo.
        """
        pass

    def resolve_pair(self, environment: Optional[str]) -> Tuple[str, str]:
        return (
            self.resolve(CredentialKind.CERTIFICATE, environment),
            self.resolve(CredentialKind.PRIVATE_KEY, environment),
        )


class ChainedCredentialProvider(CredentialProvider):
    """Prueba cada proveedor en orden (por ejemplo: base de datos y luego archivos)."""

    def __init__(self, providers: Sequence[CredentialProvider]):
        self.providers = list(providers)

    def resolve(self, kind: CredentialKind, environment: Optional[str]) -> str:
        for provider in self.providers:
            try:
                return provider.resolve(kind, environment)
            except CredentialsUnavailable as e:
                logger.info(f"{provider.__class__.__name__} sin credenciales ({kind.value}): {e}")
        raise CredentialsUnavailable(
            f"No se pudieron obtener los certificados de AFIP para el entorno {environment}"
        )
