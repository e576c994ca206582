"""Endpoints de administración de usuarios y de la jerarquía trainer/student."""

import logging
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from user_service import crud, schemas
from user_service.db import get_db
from user_service.dependencies import get_current_user, require_roles, ensure_can_access, ensure_can_manage
from user_service.models import User, UserType
from user_service.utils import can_register_user_type, get_password_hash, verify_password, send_welcome_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


# --- Rutas fijas (deben declararse antes de /{user_id}) ---

@router.get("", response_model=List[schemas.UserResponse])
def list_users(
    name: Optional[str] = None,
    email: Optional[str] = None,
    user_type: Optional[UserType] = None,
    trainer_id: Optional[UUID] = None,
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserType.ADMIN)),
):
    """Lista usuarios con filtros opcionales, más recientes primero. Solo ADMIN."""
    query = db.query(User)
    if name:
        query = query.filter(User.name.ilike(f"%{name}%"))
    if email:
        query = query.filter(User.email.ilike(f"%{email}%"))
    if user_type is not None:
        query = query.filter(User.user_type == user_type)
    if trainer_id is not None:
        query = query.filter(User.trainer_id == str(trainer_id))
    if active is not None:
        query = query.filter(User.active == active)

    return query.order_by(User.created_at.desc(), User.name).all()


@router.get("/type/{user_type}", response_model=List[schemas.UserResponse])
def list_users_by_type(
    user_type: UserType,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserType.ADMIN)),
):
    return db.query(User).filter(User.user_type == user_type).order_by(User.name).all()


@router.get("/profile", response_model=schemas.UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=schemas.UserResponse)
def update_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Actualiza nombre, email o contraseña del usuario autenticado.
    Para cambiar la contraseña se exige la contraseña actual.
    """
    if payload.email and payload.email != current_user.email:
        crud.ensure_unique(db, email=payload.email, exclude_user_id=current_user.id)
        current_user.email = payload.email

    if payload.password:
        if not payload.current_password:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Current password is required to update password")
        if not verify_password(payload.current_password, current_user.hashed_password):
            logger.warning(f"Contraseña actual incorrecta al actualizar perfil de {current_user.id}")
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Current password is incorrect")
        current_user.hashed_password = get_password_hash(payload.password)

    if payload.name:
        current_user.name = payload.name

    return crud.save_user(db, current_user)


@router.get("/trainer/{trainer_id}/students", response_model=List[schemas.UserResponse])
def list_trainer_students(
    trainer_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Alumnos de un trainer. Accesible para ADMIN o para el propio trainer."""
    if current_user.user_type != UserType.ADMIN and current_user.id != str(trainer_id):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "You do not have permission to access this trainer's students")

    trainer = crud.get_user_or_404(db, trainer_id)
    if trainer.user_type != UserType.TRAINER:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "The specified ID does not belong to a trainer")

    return (
        db.query(User)
        .filter(User.trainer_id == trainer.id, User.user_type == UserType.STUDENT)
        .order_by(User.name)
        .all()
    )


@router.post("/check-email", response_model=schemas.ExistsResponse)
def check_email(
    payload: schemas.EmailCheck,
    exclude_user_id: Optional[UUID] = Query(default=None),
    db: Session = Depends(get_db),
):
    """Usado por los formularios para validar disponibilidad antes de enviar."""
    return {"exists": crud.email_exists(db, payload.email, exclude_user_id)}


@router.post("/check-cpf", response_model=schemas.ExistsResponse)
def check_cpf(
    payload: schemas.CpfCheck,
    exclude_user_id: Optional[UUID] = Query(default=None),
    db: Session = Depends(get_db),
):
    return {"exists": crud.cpf_exists(db, payload.cpf, exclude_user_id)}


# --- CRUD ---

@router.post("", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserType.ADMIN, UserType.TRAINER)),
):
    """
    Crea un usuario. ADMIN puede crear cualquier tipo; TRAINER solo STUDENT,
    que quedan asignados a él mismo.
    """
    if not can_register_user_type(current_user.user_type, payload.user_type):
        raise HTTPException(
            status.HTTP_403_FORBIDDEN,
            f"You don't have permission to create a {payload.user_type.value} user",
        )

    trainer_id = str(payload.trainer_id) if payload.trainer_id else None
    if current_user.user_type == UserType.TRAINER:
        if trainer_id and trainer_id != current_user.id:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Trainers can only create their own students")
        trainer_id = current_user.id

    crud.ensure_unique(db, email=payload.email, cpf=payload.cpf)

    if trainer_id:
        if payload.user_type != UserType.STUDENT:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Only students can be assigned to a trainer")
        crud.get_trainer_or_error(db, trainer_id)

    new_user = User(
        name=payload.name,
        email=payload.email,
        cpf=payload.cpf,
        hashed_password=get_password_hash(payload.password),
        user_type=payload.user_type,
        active=payload.active,
        trainer_id=trainer_id,
    )
    crud.save_user(db, new_user)
    logger.info(f"Usuario {new_user.id} ({new_user.user_type.value}) creado por {current_user.id}")

    background_tasks.add_task(send_welcome_email, new_user.email, new_user.name)
    return new_user


@router.get("/{user_id}", response_model=schemas.UserResponse)
def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = crud.get_user_or_404(db, user_id)
    ensure_can_access(current_user, user)
    return user


@router.put("/{user_id}", response_model=schemas.UserResponse)
def update_user(
    user_id: UUID,
    payload: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Actualización parcial por ADMIN, o por un TRAINER sobre sus propios alumnos.
    Mantiene la invariante: solo un STUDENT tiene trainer_id y siempre apunta a un TRAINER.
    """
    user = crud.get_user_or_404(db, user_id)
    ensure_can_manage(current_user, user)

    # null en campos obligatorios equivale a "no enviado"
    data = {key: value for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key == "trainer_id"}

    crud.ensure_unique(db, email=data.get("email"), cpf=data.get("cpf"), exclude_user_id=user.id)

    new_type = data.get("user_type", user.user_type)
    if new_type != user.user_type:
        if not can_register_user_type(current_user.user_type, new_type):
            raise HTTPException(
                status.HTTP_403_FORBIDDEN,
                f"You don't have permission to change user type to {new_type.value}",
            )
        if user.user_type == UserType.TRAINER and crud.count_students(db, user.id) > 0:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, "Cannot change the type of a trainer with active students")

    if "trainer_id" in data:
        new_trainer_id = str(data["trainer_id"]) if data["trainer_id"] else None
        if new_trainer_id:
            if new_type != UserType.STUDENT:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "Only students can be assigned to a trainer")
            # La fila aún conserva el tipo anterior; un usuario nunca es su propio trainer
            if new_trainer_id == user.id:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "A user cannot be assigned as their own trainer")
            crud.get_trainer_or_error(db, new_trainer_id)
        if current_user.user_type == UserType.TRAINER and new_trainer_id != current_user.id:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Trainers can only manage their own students")
        user.trainer_id = new_trainer_id

    if new_type != UserType.STUDENT:
        user.trainer_id = None

    for field in ("name", "email", "cpf", "active"):
        if field in data:
            setattr(user, field, data[field])
    user.user_type = new_type
    if "password" in data:
        user.hashed_password = get_password_hash(data["password"])

    crud.save_user(db, user)
    logger.info(f"Usuario {user.id} actualizado por {current_user.id}: campos {sorted(data)}")
    return user


@router.delete("/{user_id}", response_model=schemas.MessageResponse)
def delete_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserType.ADMIN)),
):
    """Elimina el usuario definitivamente. Un TRAINER con alumnos no puede eliminarse."""
    logger.info(f"Iniciando proceso de eliminación para usuario {user_id}")
    user = crud.get_user_or_404(db, user_id)

    if user.id == current_user.id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "You cannot delete your own account")

    if user.user_type == UserType.TRAINER and crud.count_students(db, user.id) > 0:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Cannot delete trainer with active students")

    db.delete(user)
    db.commit()
    logger.info(f"Usuario {user_id} eliminado permanentemente.")
    return {"success": True, "message": "User deleted successfully"}
