# app/infrastructure/celery/worker.py
import logging

from celery import Celery

import config

# El broker es Google Cloud Pub/Sub ('pubsub://'); la API publica las tareas en el tema configurado
celery_app = Celery(
    'tasks',
    broker=config.CELERY_BROKER_URL,
    backend=None  # Pub/Sub no funciona como backend de resultados.
)

celery_app.conf.update(
    broker_transport_options={
        # Una reautorización no debería tardar más que unas pocas llamadas a AFIP
        'visibility_timeout': 300,
        'topic': config.CELERY_PUBSUB_TOPIC,
        'subscription_name_prefix': 'celery-worker-sub'
    },
    task_ignore_result=True
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - [%(funcName)s] - %(message)s')

from app.application.use_cases.authorize_document import AuthorizeDocumentUseCase
from app.application.use_cases.reauthorize_document import ReauthorizeDocumentUseCase
from app.infrastructure.api.dependencies import get_tax_authority_client
from app.infrastructure.persistence.database import SessionLocal
from app.infrastructure.persistence.document_repository_adapter import SQLAlchemyDocumentRepository


@celery_app.task(name="tasks.reauthorize_document")
def reauthorize_document(document_id: int):
    logging.info(f"[{document_id}] >>> INICIO DE LA REAUTORIZACIÓN.")
    db_session = SessionLocal()
    try:
        document_repo = SQLAlchemyDocumentRepository(db_session)
        use_case = ReauthorizeDocumentUseCase(
            document_repo=document_repo,
            authorization=AuthorizeDocumentUseCase(get_tax_authority_client(), document_repo),
        )
        result = use_case.execute(document_id)
        db_session.commit()
        outcome = result.authorization
        if outcome is not None and outcome.ok:
            logging.info(f"[{result.document.number}] ¡ÉXITO! CAE {outcome.result.code} guardado.")
        else:
            logging.warning(
                f"[{result.document.number}] Sigue sin CAE: "
                f"{outcome.error_kind.value if outcome else 'sin resultado'} {outcome.message if outcome else ''}"
            )
    except Exception:
        logging.error(f"[{document_id}] ¡ERROR! Se ha capturado una excepción. Iniciando rollback.", exc_info=True)
        db_session.rollback()
        raise
    finally:
        db_session.close()
