"""
Configuraciones y fixtures compartidos para las pruebas automatizadas con pytest.
Levanta la app con TestClient sobre una base SQLite temporal y crea usuarios de cada tipo.
"""

import os
import tempfile
import itertools

# Debe configurarse antes de importar user_service (engine y claves se leen al importar)
_TMP_DIR = tempfile.mkdtemp(prefix="user_service_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test_users.db')}"
os.environ["JWT_SECRET_KEY"] = "test_secret_key_for_pytest"
os.environ["DB_CONNECT_ATTEMPTS"] = "1"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("SMTP_HOST", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from user_service.db import Base, engine, SessionLocal  # noqa: E402
from user_service.main import app  # noqa: E402
from user_service.models import User, UserType  # noqa: E402
from user_service.routers import auth as auth_router, users as users_router  # noqa: E402
from user_service.utils import create_access_token, get_password_hash  # noqa: E402

DEFAULT_PASSWORD = "password123"

_cpf_counter = itertools.count(10000000000)


def next_cpf() -> str:
    """CPF único de 11 dígitos para cada usuario de prueba."""
    return str(next(_cpf_counter))


@pytest.fixture(autouse=True)
def reset_database():
    """Cada prueba arranca con las tablas vacías."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Captura los correos en lugar de enviarlos por SMTP."""
    sent = []

    def fake_reset(to_email, token):
        sent.append({"kind": "reset", "to": to_email, "token": token})
        return True

    def fake_welcome(to_email, name):
        sent.append({"kind": "welcome", "to": to_email, "name": name})
        return True

    monkeypatch.setattr(auth_router, "send_reset_email", fake_reset)
    monkeypatch.setattr(auth_router, "send_welcome_email", fake_welcome)
    monkeypatch.setattr(users_router, "send_welcome_email", fake_welcome)
    return sent


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user():
    """Inserta un usuario directamente en la BD y devuelve sus datos básicos."""

    def _make(user_type=UserType.STUDENT, name=None, email=None, trainer_id=None,
              active=True, password=DEFAULT_PASSWORD):
        cpf = next_cpf()
        db = SessionLocal()
        try:
            user = User(
                name=name or f"{user_type.value.title()} {cpf[-4:]}",
                email=(email or f"{user_type.value.lower()}_{cpf}@physipro.com").lower(),
                cpf=cpf,
                hashed_password=get_password_hash(password),
                user_type=user_type,
                active=active,
                trainer_id=trainer_id,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            return {
                "id": user.id,
                "email": user.email,
                "cpf": user.cpf,
                "name": user.name,
                "password": password,
                "user_type": user.user_type,
            }
        finally:
            db.close()

    return _make


def bearer(user: dict) -> dict:
    """Cabeceras de autorización Bearer para un usuario de prueba."""
    token = create_access_token({"sub": user["id"], "role": user["user_type"].value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(make_user):
    return make_user(UserType.ADMIN, name="Admin User")


@pytest.fixture
def trainer(make_user):
    return make_user(UserType.TRAINER, name="Trainer One")


@pytest.fixture
def other_trainer(make_user):
    return make_user(UserType.TRAINER, name="Trainer Two")


@pytest.fixture
def student(make_user, trainer):
    """STUDENT asignado a `trainer`."""
    return make_user(UserType.STUDENT, name="Student Of One", trainer_id=trainer["id"])


@pytest.fixture
def other_student(make_user, other_trainer):
    return make_user(UserType.STUDENT, name="Student Of Two", trainer_id=other_trainer["id"])
