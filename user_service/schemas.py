"""Modelos Pydantic (schemas) para validación de datos de entrada/salida en el User Service."""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator

from user_service.models import UserType
from user_service.utils import is_strong_password, is_valid_cpf, normalize_cpf, PASSWORD_RULES_MESSAGE


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("Name cannot be empty")
    return value


def _clean_cpf(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not is_valid_cpf(value):
        raise ValueError("CPF must contain exactly 11 digits")
    return normalize_cpf(value)


def _check_password(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_strong_password(value):
        raise ValueError(PASSWORD_RULES_MESSAGE)
    return value


def _lower_email(value: Optional[str]) -> Optional[str]:
    return value.lower() if value is not None else value


# --- Schemas de Usuario ---

class UserRegister(BaseModel):
    """Auto-registro público. El tipo siempre será STUDENT."""
    name: str = Field(..., max_length=100)
    email: EmailStr
    cpf: str = Field(..., description="CPF con o sin puntuación (11 dígitos)")
    password: str

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value):
        return _clean_name(value)

    @field_validator("cpf")
    @classmethod
    def _validate_cpf(cls, value):
        return _clean_cpf(value)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value):
        return _check_password(value)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value):
        return _lower_email(value)


class UserCreate(UserRegister):
    """Alta hecha por un ADMIN (cualquier tipo) o un TRAINER (solo STUDENT)."""
    user_type: UserType
    trainer_id: Optional[UUID] = None
    active: bool = True


class UserUpdate(BaseModel):
    """Actualización parcial de un usuario. `trainer_id: null` explícito desasigna al trainer."""
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    cpf: Optional[str] = None
    password: Optional[str] = None
    user_type: Optional[UserType] = None
    active: Optional[bool] = None
    trainer_id: Optional[UUID] = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value):
        return _clean_name(value)

    @field_validator("cpf")
    @classmethod
    def _validate_cpf(cls, value):
        return _clean_cpf(value)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value):
        return _check_password(value)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value):
        return _lower_email(value)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    current_password: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value):
        return _clean_name(value)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value):
        return _check_password(value)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value):
        return _lower_email(value)


class UserResponse(BaseModel):
    """Vista pública del usuario (sin password ni datos de recuperación)."""
    id: str
    name: str
    email: str
    cpf: str
    user_type: UserType
    active: bool
    trainer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Schemas de Autenticación ---

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value):
        return _lower_email(value)


class Token(BaseModel):
    """Schema para el token de acceso JWT devuelto tras un login exitoso."""
    access_token: str
    token_type: str = "bearer"


class AuthResponse(Token):
    user: UserResponse


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def _validate_new_password(cls, value):
        return _check_password(value)


class PasswordResetRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value):
        return _lower_email(value)


class PasswordResetConfirm(BaseModel):
    token: str = Field(..., min_length=1)
    password: str

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value):
        return _check_password(value)


# --- Schemas auxiliares ---

class EmailCheck(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, value):
        return _lower_email(value)


class CpfCheck(BaseModel):
    cpf: str

    @field_validator("cpf")
    @classmethod
    def _validate_cpf(cls, value):
        return _clean_cpf(value)


class ExistsResponse(BaseModel):
    exists: bool


class MessageResponse(BaseModel):
    success: bool = True
    message: str
