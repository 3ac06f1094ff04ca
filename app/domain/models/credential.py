# app/domain/models/credential.py
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CredentialKind(str, Enum):
    CERTIFICATE = "CERTIFICATE"
    PRIVATE_KEY = "PRIVATE_KEY"


class TaxCredential(BaseModel):
    """Certificado o clave privada para firmar ante AFIP. Sólo lectura para el motor."""
    kind: CredentialKind
    environment: Optional[str] = None
    content: str
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
