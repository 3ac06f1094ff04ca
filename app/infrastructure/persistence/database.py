# app/infrastructure/persistence/database.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

import config


def configure_sqlite(engine: Engine) -> Engine:
    """
    pysqlite no abre la transacción antes de un SAVEPOINT; se desactiva su
    manejo propio y se emite BEGIN explícito para que los puntos de guardado
    funcionen (desarrollo local y tests).
    """
    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


# En producción DATABASE_URL apunta a PostgreSQL
DATABASE_URL = config.DATABASE_URL
if not DATABASE_URL:
    raise ValueError("No se ha definido DATABASE_URL en el archivo .env")

if DATABASE_URL.startswith("sqlite"):
    engine = configure_sqlite(create_engine(DATABASE_URL, connect_args={"check_same_thread": False}))
else:
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
