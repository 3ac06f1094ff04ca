# config.py
import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

# --- CONFIGURACIÓN GENERAL ---
APP_ENV = os.getenv("APP_ENV", "development")

# URL de la base de datos (PostgreSQL en producción)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./facturacion.db")

# Orígenes permitidos para el frontend
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]

# --- CONFIGURACIÓN DE AFIP ---
# Los certificados se etiquetan por entorno: PROD o DEV
AFIP_ENVIRONMENT = "PROD" if APP_ENV == "production" else "DEV"
AFIP_CUIT = os.getenv("AFIP_CUIT", "20461628312")
AFIP_ACCESS_TOKEN = os.getenv("AFIP_ACCESS_TOKEN")
AFIP_SDK_BASE_URL = os.getenv("AFIP_SDK_BASE_URL", "https://app.afipsdk.com/api/")
AFIP_SALES_POINT = int(os.getenv("AFIP_SALES_POINT", "1"))
AFIP_TIMEOUT_SECONDS = float(os.getenv("AFIP_TIMEOUT_SECONDS", "30"))

# Certificados en archivos, usados si no hay certificados activos en la base
AFIP_CERT_PATH = os.getenv("AFIP_CERT_PATH", os.path.join("certs", "cert.crt"))
AFIP_KEY_PATH = os.getenv("AFIP_KEY_PATH", os.path.join("certs", "key.key"))

# --- CONFIGURACIÓN DE FACTURACIÓN ---
DEFAULT_VAT_RATE = Decimal(os.getenv("DEFAULT_VAT_RATE", "21"))
NUMBER_ALLOCATION_MAX_ATTEMPTS = int(os.getenv("NUMBER_ALLOCATION_MAX_ATTEMPTS", "5"))

# --- CONFIGURACIÓN DE CELERY ---
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "pubsub://")
CELERY_PUBSUB_TOPIC = os.getenv("CELERY_PUBSUB_TOPIC", "facturacion-reautorizaciones")
