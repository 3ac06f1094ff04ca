# app/infrastructure/persistence/credential_provider_adapter.py
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.domain.exceptions import CredentialsUnavailable
from app.domain.models.credential import CredentialKind, TaxCredential
from app.domain.ports.credential_provider import CredentialProvider
from .models import CertificadoAfip

logger = logging.getLogger(__name__)


class SQLAlchemyCredentialProvider(CredentialProvider):
    """
    Lee el certificado y la clave activos de la tabla certificados_afip.

    Primero busca los etiquetados con el entorno pedido; si el par no está
    completo, usa los que no tienen entorno asignado. Cada consulta abre su
    propia sesión y la cierra al terminar.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @staticmethod
    def _latest(db: Session, kind: CredentialKind, environment: Optional[str]) -> Optional[TaxCredential]:
        query = db.query(CertificadoAfip).filter(
            CertificadoAfip.tipo == kind.value,
            CertificadoAfip.activo.is_(True),
        )
        if environment is None:
            query = query.filter(CertificadoAfip.entorno.is_(None))
        else:
            query = query.filter(CertificadoAfip.entorno == environment)
        row = query.order_by(CertificadoAfip.creado_en.desc(), CertificadoAfip.id.desc()).first()
        if row is None:
            return None
        return TaxCredential(
            kind=CredentialKind(row.tipo),
            environment=row.entorno,
            content=row.contenido,
            is_active=row.activo,
            created_at=row.creado_en,
        )

    def _pair(self, db: Session, environment: Optional[str]):
        return (
            self._latest(db, CredentialKind.CERTIFICATE, environment),
            self._latest(db, CredentialKind.PRIVATE_KEY, environment),
        )

    def resolve(self, kind: CredentialKind, environment: Optional[str]) -> str:
        with self.session_factory() as db:
            cert, key = self._pair(db, environment)
            if (cert is None or key is None) and environment is not None:
                logger.info(f"Sin par completo de certificados para {environment}; se usan los genéricos.")
                cert, key = self._pair(db, None)
        if cert is None or key is None:
            raise CredentialsUnavailable(f"No hay certificado y clave activos en la base para {environment}")
        return cert.content if kind == CredentialKind.CERTIFICATE else key.content
