"""Pruebas de los endpoints de monitoreo y del script de creación del ADMIN inicial."""

import pytest
from fastapi import HTTPException
from sqlalchemy import exc

from user_service import init_admin
from user_service.db import SessionLocal, get_db
from user_service.models import User, UserType


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["database"] is True


def test_metrics_exposes_request_counters(client):
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "user_requests_total" in r.text


def test_init_admin_is_idempotent(client, monkeypatch):
    monkeypatch.setattr(init_admin, "ADMIN_EMAIL", "Root@PhysiPro.com")
    monkeypatch.setattr(init_admin, "ADMIN_PASSWORD", "rootPass123")

    assert init_admin.create_admin() is True
    assert init_admin.create_admin() is False

    db = SessionLocal()
    try:
        admins = db.query(User).filter(User.user_type == UserType.ADMIN).all()
    finally:
        db.close()
    assert [a.email for a in admins] == ["root@physipro.com"]
    assert admins[0].cpf == "00000000000"

    login = client.post("/api/auth/login", json={"email": "root@physipro.com", "password": "rootPass123"})
    assert login.status_code == 200
    assert login.json()["user"]["user_type"] == "ADMIN"


def test_get_db_maps_database_failures_to_500():
    session_gen = get_db()
    next(session_gen)
    with pytest.raises(HTTPException) as raised:
        session_gen.throw(exc.OperationalError("SELECT 1", {}, Exception("connection lost")))
    assert raised.value.status_code == 500
    assert raised.value.detail == "Internal database error."


def test_get_db_propagates_controlled_http_errors():
    session_gen = get_db()
    next(session_gen)
    with pytest.raises(HTTPException) as raised:
        session_gen.throw(HTTPException(status_code=404, detail="User with ID x not found"))
    assert raised.value.status_code == 404
