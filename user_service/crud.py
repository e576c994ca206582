"""Consultas y escrituras reutilizadas por los routers de auth y users."""

import logging
from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from user_service.models import User, UserType

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id) -> Optional[User]:
    return db.query(User).filter(User.id == str(user_id)).first()


def get_user_or_404(db: Session, user_id) -> User:
    user = get_user(db, user_id)
    if not user:
        logger.warning(f"Usuario con ID {user_id} no encontrado.")
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"User with ID {user_id} not found")
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def email_exists(db: Session, email: str, exclude_user_id=None) -> bool:
    query = db.query(User.id).filter(User.email == email.lower())
    if exclude_user_id is not None:
        query = query.filter(User.id != str(exclude_user_id))
    return query.first() is not None


def cpf_exists(db: Session, cpf: str, exclude_user_id=None) -> bool:
    query = db.query(User.id).filter(User.cpf == cpf)
    if exclude_user_id is not None:
        query = query.filter(User.id != str(exclude_user_id))
    return query.first() is not None


def ensure_unique(db: Session, email: Optional[str] = None, cpf: Optional[str] = None, exclude_user_id=None) -> None:
    """Lanza 409 si el email o el CPF ya pertenecen a otro usuario."""
    if email and email_exists(db, email, exclude_user_id):
        raise HTTPException(status.HTTP_409_CONFLICT, f"Email {email} is already in use")
    if cpf and cpf_exists(db, cpf, exclude_user_id):
        raise HTTPException(status.HTTP_409_CONFLICT, f"CPF {cpf} is already registered")


def get_trainer_or_error(db: Session, trainer_id) -> User:
    """Valida que trainer_id exista y sea un TRAINER."""
    trainer = get_user(db, trainer_id)
    if not trainer:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Trainer not found")
    if trainer.user_type != UserType.TRAINER:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "The specified trainer ID does not belong to a trainer user")
    return trainer


def count_students(db: Session, trainer_id: str) -> int:
    return db.query(User).filter(User.trainer_id == trainer_id, User.user_type == UserType.STUDENT).count()


def save_user(db: Session, user: User) -> User:
    """
    Hace commit y refresca el usuario.
    Una carrera sobre email/CPF que pasó los chequeos previos termina en IntegrityError -> 409.
    """
    try:
        db.add(user)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Violación de unicidad guardando usuario: {e.orig}")
        raise HTTPException(status.HTTP_409_CONFLICT, "User already exists")
    db.refresh(user)
    return user
