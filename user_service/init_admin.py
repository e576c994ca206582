"""
Script que crea el usuario ADMIN inicial en la base de datos.
Uso: user-service-init-admin  (o python -m user_service.init_admin)
"""

import logging
import os
import sys
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError

from user_service.db import engine, Base, SessionLocal
from user_service.models import User, UserType
from user_service.utils import get_password_hash, normalize_cpf, is_valid_cpf

load_dotenv()

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("init_admin")

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@physipro.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123456")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin User")
ADMIN_CPF = os.getenv("ADMIN_CPF", "000.000.000-00")


def create_admin(session_factory=None) -> bool:
    """
    Crea el ADMIN si no existe uno con ADMIN_EMAIL.

    Returns:
        True si se creó, False si ya existía.
    """
    session_factory = session_factory or SessionLocal
    if session_factory is None:
        raise RuntimeError("Database is not available")

    if not is_valid_cpf(ADMIN_CPF):
        raise ValueError("ADMIN_CPF must contain exactly 11 digits")

    db = session_factory()
    try:
        email = ADMIN_EMAIL.lower()
        if db.query(User).filter(User.email == email).first():
            logger.info("Admin user already exists. No action needed.")
            return False

        db.add(User(
            name=ADMIN_NAME,
            email=email,
            cpf=normalize_cpf(ADMIN_CPF),
            hashed_password=get_password_hash(ADMIN_PASSWORD),
            user_type=UserType.ADMIN,
            active=True,
        ))
        db.commit()
        logger.info(f"Admin user created successfully: {email}")
        logger.warning("IMPORTANT: Change this password after first login!")
        return True
    except SQLAlchemyError:
        db.rollback()
        raise
    finally:
        db.close()


def main() -> int:
    if engine is None:
        logger.error("No se pudo conectar a la base de datos.")
        return 1
    try:
        Base.metadata.create_all(bind=engine)
        create_admin()
    except (SQLAlchemyError, ValueError) as e:
        logger.error(f"Error creating admin user: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
