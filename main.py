# main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - [%(funcName)s] - %(message)s')

# Importamos los routers de la capa de infraestructura
from app.infrastructure.api.routers import afip_router, documents_router

app = FastAPI(
    title="API de Facturación Electrónica",
    description="Emisión de comprobantes con autorización de AFIP (CAE), stock y anulaciones.",
    version="1.0.0-DDD"
)

# Configuración de CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(documents_router.router)
app.include_router(afip_router.router)


@app.get("/", tags=["Health Check"])
def read_root():
    return {"status": "ok", "message": "API de facturación en línea", "entorno_afip": config.AFIP_ENVIRONMENT}
