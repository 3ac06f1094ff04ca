# app/infrastructure/external/file_credential_adapter.py
import logging
import os
from typing import Optional

import config
from app.domain.exceptions import CredentialsUnavailable
from app.domain.models.credential import CredentialKind
from app.domain.ports.credential_provider import CredentialProvider

logger = logging.getLogger(__name__)


class FileCredentialProvider(CredentialProvider):
    """Certificado y clave en archivos PEM; respaldo cuando la base no tiene ninguno."""

    def __init__(self, cert_path: str = config.AFIP_CERT_PATH, key_path: str = config.AFIP_KEY_PATH):
        self.paths = {
            CredentialKind.CERTIFICATE: cert_path,
            CredentialKind.PRIVATE_KEY: key_path,
        }

    def resolve(self, kind: CredentialKind, environment: Optional[str]) -> str:
        for path in self.paths.values():
            if not path or not os.path.exists(path):
                raise CredentialsUnavailable(f"No se encontró el archivo de credenciales: {path}")

        path = self.paths[kind]
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise CredentialsUnavailable(f"No se pudo leer {path}: {e}") from e
        if not content.strip():
            raise CredentialsUnavailable(f"El archivo {path} está vacío")
        logger.info(f"Credencial {kind.value} leída de {path}.")
        return content
