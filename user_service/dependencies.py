"""Dependencias de FastAPI para autenticación (bearer JWT) y autorización por rol/propiedad."""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from user_service.db import get_db
from user_service.models import User, UserType
from user_service.utils import decode_token

logger = logging.getLogger(__name__)

# auto_error=False para devolver nuestro propio mensaje cuando falta el token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resuelve el usuario autenticado a partir del header Authorization.
    Siempre consulta la BD: un usuario borrado o desactivado pierde el acceso aunque su token siga vigente.
    """
    if not token:
        raise _unauthorized("Authentication token missing")

    payload = decode_token(token)
    if payload is None or "sub" not in payload:
        raise _unauthorized("Invalid or expired token")

    user = db.query(User).filter(User.id == payload["sub"]).first()
    if not user:
        logger.warning(f"Token válido para usuario inexistente: {payload['sub']}")
        raise _unauthorized("Invalid or expired token")

    if not user.active:
        logger.warning(f"Acceso rechazado para usuario inactivo: {user.id}")
        raise _unauthorized("User account is inactive")

    return user


def require_roles(*allowed: UserType):
    """Fábrica de dependencias: exige que el usuario autenticado tenga uno de los tipos indicados."""

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.user_type not in allowed:
            logger.warning(
                f"Usuario {current_user.id} ({current_user.user_type.value}) sin permisos. "
                f"Requerido: {[role.value for role in allowed]}"
            )
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Insufficient permissions")
        return current_user

    return checker


def is_trainer_of(current_user: User, target: User) -> bool:
    return (
        current_user.user_type == UserType.TRAINER
        and target.user_type == UserType.STUDENT
        and target.trainer_id == current_user.id
    )


def ensure_can_access(current_user: User, target: User) -> None:
    """Lectura: ADMIN ve a todos, cada uno se ve a sí mismo y un TRAINER ve a sus STUDENT."""
    if current_user.user_type == UserType.ADMIN or current_user.id == target.id:
        return
    if is_trainer_of(current_user, target):
        return
    raise HTTPException(status.HTTP_403_FORBIDDEN, "You do not have permission to access this user data")


def ensure_can_manage(current_user: User, target: User) -> None:
    """Escritura: ADMIN sobre cualquiera, TRAINER solo sobre sus STUDENT."""
    if current_user.user_type == UserType.ADMIN:
        return
    if is_trainer_of(current_user, target):
        return
    raise HTTPException(status.HTTP_403_FORBIDDEN, "You do not have permission to modify this user")
