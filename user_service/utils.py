"""Funciones de utilidad para el User Service: hash de contraseñas, manejo de JWT, tokens de recuperación y correo."""

import os
import re
import hashlib
import logging
import secrets
import smtplib
from email.message import EmailMessage
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple
from passlib.context import CryptContext
from jose import JWTError, ExpiredSignatureError, jwt
from dotenv import load_dotenv

from user_service.models import UserType

# Carga variables de entorno desde .env
load_dotenv()

logger = logging.getLogger(__name__)

# --- Configuración de Seguridad ---
SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not SECRET_KEY:
    logger.warning("JWT_SECRET_KEY no está definida en las variables de entorno. Usando clave insegura por defecto para desarrollo.")
    SECRET_KEY = "clave_secreta_insegura_por_defecto_cambiar_urgentemente"

ALGORITHM = "HS256"

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))
RESET_TOKEN_EXPIRE_MINUTES = int(os.getenv("RESET_TOKEN_EXPIRE_MINUTES", 60))

# --- Configuración de correo ---
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
EMAIL_FROM = os.getenv("EMAIL_FROM", "noreply@physipro.com")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)

PASSWORD_RULES_MESSAGE = "Password must be at least 8 characters and contain letters and numbers"


def utcnow() -> datetime:
    """UTC sin tzinfo, igual a como se guardan las fechas de expiración."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- Contraseñas ---

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica una contraseña plana contra un hash almacenado."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Genera el hash de una contraseña plana usando bcrypt."""
    return pwd_context.hash(password)


def is_strong_password(password: str) -> bool:
    """Al menos 8 caracteres, con al menos una letra y un número."""
    return (
        len(password) >= 8
        and re.search(r"[A-Za-z]", password) is not None
        and re.search(r"[0-9]", password) is not None
    )


# --- Validaciones de identidad ---

def normalize_cpf(cpf: str) -> str:
    """Quita puntos, guiones y cualquier otro carácter que no sea dígito."""
    return re.sub(r"\D", "", cpf or "")


def is_valid_cpf(cpf: str) -> bool:
    # Solo formato (11 dígitos); no se valida el dígito verificador
    return len(normalize_cpf(cpf)) == 11


def can_register_user_type(registrar: UserType, target: UserType) -> bool:
    """
    Indica si un usuario del tipo `registrar` puede crear (o convertir a) un usuario del tipo `target`.

    ADMIN puede todo, TRAINER solo STUDENT, STUDENT nada.
    """
    if registrar == UserType.ADMIN:
        return True
    if registrar == UserType.TRAINER:
        return target == UserType.STUDENT
    return False


# --- Utilidades para Tokens JWT ---

def create_access_token(data: Dict, expires_minutes: Optional[int] = None) -> str:
    """
    Genera un token de acceso JWT con los datos proporcionados y una marca de tiempo de expiración.

    Args:
        data: Diccionario (payload) a incluir en el token (ej., {'sub': user_id}).
        expires_minutes: Vida del token; por defecto ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        String del JWT codificado.
    """
    now = datetime.now(timezone.utc)
    minutes = ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    to_encode = data.copy()
    to_encode.update({"iat": now, "exp": now + timedelta(minutes=minutes), "type": "access"})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[Dict]:
    """
    Decodifica y valida un token JWT de acceso.

    Returns:
        El payload si la firma es válida, no ha expirado y es de tipo 'access';
        en caso contrario, None.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM], options={"verify_aud": False})
    except ExpiredSignatureError:
        logger.warning("Fallo en decodificación de token: El token ha expirado.")
        return None
    except JWTError as e:
        logger.warning(f"Fallo en decodificación de token: {e}")
        return None

    if payload.get("type") != "access":
        logger.warning(f"Token con tipo inesperado: {payload.get('type')}")
        return None
    return payload


# --- Tokens de recuperación de contraseña ---

def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_password_reset_token() -> Tuple[str, str]:
    """
    Genera un token aleatorio para resetear password.

    Returns:
        (token plano para enviar por correo, hash SHA-256 para guardar en la BD)
    """
    token = secrets.token_hex(32)
    return token, hash_reset_token(token)


def reset_token_expiry() -> datetime:
    return utcnow() + timedelta(minutes=RESET_TOKEN_EXPIRE_MINUTES)


# --- Correo ---

def send_email(to_email: str, subject: str, body: str) -> bool:
    """
    Envía un correo de texto plano vía SMTP.
    Nunca lanza excepciones: los fallos se registran y se devuelve False.
    """
    if not SMTP_HOST:
        logger.warning(f"SMTP_HOST no configurado. Se omite el envío de '{subject}' a {to_email}.")
        return False

    msg = EmailMessage()
    msg.set_content(body)
    msg["Subject"] = subject
    msg["From"] = EMAIL_FROM
    msg["To"] = to_email

    try:
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=10) as server:
            if SMTP_USER and SMTP_PASSWORD:
                server.starttls()
                server.login(SMTP_USER, SMTP_PASSWORD)
            server.send_message(msg)
        logger.info(f"Correo '{subject}' enviado a {to_email}")
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Error enviando correo a {to_email}: {e}")
        return False


def send_reset_email(to_email: str, token: str) -> bool:
    """Envía el correo con el link de recuperación."""
    reset_link = f"{FRONTEND_URL}/reset-password?token={token}"
    body = f"""
    Hello,

    You requested a password reset.
    Use the link below to choose a new password:

    {reset_link}

    This link expires in {RESET_TOKEN_EXPIRE_MINUTES} minutes.
    If you did not request this, please ignore this message.
    """
    return send_email(to_email, "Password Reset - PhysiPro", body)


def send_welcome_email(to_email: str, name: str) -> bool:
    body = f"Hi {name}, welcome to PhysiPro! Your account has been created successfully."
    return send_email(to_email, "Welcome to PhysiPro", body)
