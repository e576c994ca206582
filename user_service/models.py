"""Define el modelo de la tabla 'users' usando SQLAlchemy ORM."""

import enum
import uuid
from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime, Enum as SQLEnum, func
from sqlalchemy.orm import relationship

from user_service.db import Base


class UserType(str, enum.Enum):
    """Tipos de cuenta soportados por el servicio."""
    ADMIN = "ADMIN"
    TRAINER = "TRAINER"
    STUDENT = "STUDENT"


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Modelo SQLAlchemy que representa la tabla 'users'.
    Un TRAINER puede tener cero o más STUDENT asociados vía trainer_id.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    cpf = Column(String(11), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    user_type = Column(SQLEnum(UserType), nullable=False, default=UserType.STUDENT)
    active = Column(Boolean, nullable=False, default=True)

    # Solo se usa para STUDENT; debe apuntar a un TRAINER
    trainer_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)

    # Se guarda el SHA-256 del token enviado por correo, nunca el token plano
    reset_password_token = Column(String(64), nullable=True, index=True)
    reset_password_expires = Column(DateTime, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    trainer = relationship("User", remote_side=[id], back_populates="students")
    students = relationship("User", back_populates="trainer")

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} type={self.user_type}>"
