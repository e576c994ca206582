"""Endpoints de autenticación: registro, login, recuperación y cambio de contraseña."""

import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from user_service import crud, schemas
from user_service.db import get_db
from user_service.dependencies import get_current_user
from user_service.models import User, UserType
from user_service.utils import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_password_reset_token,
    hash_reset_token,
    reset_token_expiry,
    send_reset_email,
    send_welcome_email,
    utcnow,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

RESET_REQUESTED_MESSAGE = "If the email is registered, you will receive reset instructions shortly."


def _issue_token(user: User) -> str:
    return create_access_token(data={"sub": user.id, "role": user.user_type.value})


def _authenticate(db: Session, email: str, password: str) -> User:
    user = crud.get_user_by_email(db, email)

    if not user or not verify_password(password, user.hashed_password):
        logger.warning(f"Login failed for user: {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.active:
        logger.warning(f"Login rechazado, cuenta inactiva: {user.id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Your account is inactive. Please contact support.",
        )

    return user


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.UserRegister, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    """
    Auto-registro público. La cuenta siempre se crea como STUDENT, sin trainer asignado.
    """
    logger.info(f"Registro iniciado para email: {payload.email}")

    crud.ensure_unique(db, email=payload.email, cpf=payload.cpf)

    new_user = User(
        name=payload.name,
        email=payload.email,
        cpf=payload.cpf,
        hashed_password=get_password_hash(payload.password),
        user_type=UserType.STUDENT,
        active=True,
    )
    crud.save_user(db, new_user)
    logger.info(f"Usuario {new_user.id} registrado como STUDENT.")

    background_tasks.add_task(send_welcome_email, new_user.email, new_user.name)

    return {"user": new_user, "access_token": _issue_token(new_user), "token_type": "bearer"}


@router.post("/login", response_model=schemas.AuthResponse)
def login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    """Autentica con email y contraseña y devuelve el usuario junto a un token bearer."""
    logger.info(f"Login attempt for user: {credentials.email}")
    user = _authenticate(db, credentials.email, credentials.password)
    logger.info(f"Login successful for user_id: {user.id}")
    return {"user": user, "access_token": _issue_token(user), "token_type": "bearer"}


@router.post("/token", response_model=schemas.Token)
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Variante OAuth2 (form-data, username = email) usada por el botón 'Authorize' de /docs.
    """
    user = _authenticate(db, form_data.username.lower(), form_data.password)
    return {"access_token": _issue_token(user), "token_type": "bearer"}


@router.get("/me", response_model=schemas.UserResponse)
def read_current_user(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/request-reset", response_model=schemas.MessageResponse)
def request_password_reset(
    payload: schemas.PasswordResetRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Genera un token de recuperación y lo envía por correo.
    Siempre responde lo mismo para no revelar qué correos están registrados.
    """
    user = crud.get_user_by_email(db, payload.email)

    if user:
        token, token_hash = create_password_reset_token()
        user.reset_password_token = token_hash
        user.reset_password_expires = reset_token_expiry()
        db.commit()
        logger.info(f"Token de recuperación generado para user_id: {user.id}")
        background_tasks.add_task(send_reset_email, user.email, token)
    else:
        logger.info(f"Solicitud de recuperación para email no registrado: {payload.email}")

    return {"success": True, "message": RESET_REQUESTED_MESSAGE}


@router.post("/reset-password", response_model=schemas.MessageResponse)
def reset_password(payload: schemas.PasswordResetConfirm, db: Session = Depends(get_db)):
    """Confirma el cambio con el token recibido por correo. El token es de un solo uso."""
    user = (
        db.query(User)
        .filter(
            User.reset_password_token == hash_reset_token(payload.token),
            User.reset_password_expires > utcnow(),
        )
        .first()
    )

    if not user:
        logger.warning("Intento de reset con token inválido o expirado.")
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid or expired reset token")

    user.hashed_password = get_password_hash(payload.password)
    user.reset_password_token = None
    user.reset_password_expires = None
    db.commit()
    logger.info(f"Contraseña restablecida para user_id: {user.id}")

    return {"success": True, "message": "Password reset successful"}


@router.post("/change-password", response_model=schemas.MessageResponse)
def change_password(
    req: schemas.PasswordChangeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Cambia la contraseña del usuario autenticado validando la actual."""
    logger.info(f"Intento de cambio de contraseña para user_id: {current_user.id}")

    if req.new_password != req.confirm_password:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Passwords do not match")

    if not verify_password(req.current_password, current_user.hashed_password):
        logger.warning(f"Fallo cambio de password user {current_user.id}: Password actual incorrecto")
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Current password is incorrect")

    current_user.hashed_password = get_password_hash(req.new_password)
    # Un reset pendiente ya no tiene sentido tras un cambio explícito
    current_user.reset_password_token = None
    current_user.reset_password_expires = None
    db.commit()
    logger.info(f"Contraseña actualizada exitosamente para user {current_user.id}")

    return {"success": True, "message": "Password updated successfully"}
