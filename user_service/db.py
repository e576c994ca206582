"""Configuración de la conexión a la base de datos usando SQLAlchemy para el User Service."""

import os
import logging
import time
from fastapi import HTTPException, status
from fastapi.exceptions import RequestValidationError
from sqlalchemy import create_engine, exc
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Carga variables de entorno desde el archivo .env
load_dotenv()


def build_database_url() -> str:
    """
    Resuelve la URL de conexión.

    DATABASE_URL tiene prioridad; si no existe se arma una URL de MariaDB con
    DB_USER/DB_PASS/DB_HOST/DB_NAME, y como último recurso se usa SQLite local.
    """
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    db_vars = {name: os.getenv(name) for name in ("DB_USER", "DB_PASS", "DB_HOST", "DB_NAME")}
    if all(db_vars.values()):
        return "mysql+pymysql://{DB_USER}:{DB_PASS}@{DB_HOST}/{DB_NAME}".format(**db_vars)

    missing = [name for name, value in db_vars.items() if not value]
    if len(missing) < len(db_vars):
        logger.error(f"Faltan variables de entorno para la base de datos: {', '.join(missing)}")
    logger.warning("DATABASE_URL no definida. Usando SQLite local (solo desarrollo).")
    return "sqlite:///./user_service.db"


SQLALCHEMY_DATABASE_URL = build_database_url()

MAX_ATTEMPTS = int(os.getenv("DB_CONNECT_ATTEMPTS", 30))
WAIT_TIME = int(os.getenv("DB_CONNECT_WAIT", 10))


def connect_with_retry(url: str, max_attempts: int = MAX_ATTEMPTS, wait_time: int = WAIT_TIME):
    """Crea el engine y verifica la conexión, reintentando mientras la BD arranca."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}

    for attempt in range(1, max_attempts + 1):
        try:
            logger.info(f"Intentando conectar a la base de datos (Intento {attempt}/{max_attempts})...")
            candidate = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
            with candidate.connect():
                logger.info("Conexión a la base de datos establecida exitosamente.")
            return candidate
        except exc.SQLAlchemyError as e:
            logger.warning(f"Fallo al conectar a la base de datos: {e}")
            if attempt < max_attempts:
                time.sleep(wait_time)

    logger.error("No se pudo conectar a la base de datos después de %d intentos.", max_attempts)
    return None


engine = connect_with_retry(SQLALCHEMY_DATABASE_URL)

# Fábrica de sesiones (None si la BD nunca respondió)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine) if engine else None

# Clase base para los modelos declarativos
Base = declarative_base()


def get_db():
    if SessionLocal is None:
        logger.error("La fábrica de sesiones de base de datos no está inicializada.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database service unavailable.")

    db = SessionLocal()
    try:
        yield db
    except (RequestValidationError, HTTPException):
        # Errores controlados: ya se registran donde se lanzan
        db.rollback()
        raise
    except exc.SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Fallo de SQLAlchemy en la petición, se revierte la sesión: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal database error.")
    except Exception as e:
        db.rollback()
        logger.error(f"Excepción no controlada en la petición: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error.")
    finally:
        db.close()
