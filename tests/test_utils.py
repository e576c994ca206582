"""Pruebas unitarias de las utilidades de seguridad y validación (user_service/utils.py)."""

from jose import jwt

from user_service import utils
from user_service.models import UserType


def test_password_hash_and_verify():
    hashed = utils.get_password_hash("segredo123")
    assert hashed != "segredo123"
    assert utils.verify_password("segredo123", hashed)
    assert not utils.verify_password("segredo124", hashed)


def test_strong_password_rules():
    assert utils.is_strong_password("abc12345")
    assert not utils.is_strong_password("abc1234")      # muy corta
    assert not utils.is_strong_password("abcdefgh")     # sin números
    assert not utils.is_strong_password("12345678")     # sin letras


def test_cpf_normalization_and_format():
    assert utils.normalize_cpf("123.456.789-09") == "12345678909"
    assert utils.is_valid_cpf("123.456.789-09")
    assert not utils.is_valid_cpf("1234567890")
    assert not utils.is_valid_cpf("123456789012")


def test_can_register_user_type():
    assert utils.can_register_user_type(UserType.ADMIN, UserType.ADMIN)
    assert utils.can_register_user_type(UserType.ADMIN, UserType.TRAINER)
    assert utils.can_register_user_type(UserType.TRAINER, UserType.STUDENT)
    assert not utils.can_register_user_type(UserType.TRAINER, UserType.TRAINER)
    assert not utils.can_register_user_type(UserType.TRAINER, UserType.ADMIN)
    assert not utils.can_register_user_type(UserType.STUDENT, UserType.STUDENT)


def test_access_token_contains_subject_and_type():
    token = utils.create_access_token({"sub": "abc", "role": "ADMIN"})
    payload = utils.decode_token(token)
    assert payload["sub"] == "abc"
    assert payload["role"] == "ADMIN"
    assert payload["type"] == "access"
    assert payload["exp"] > payload["iat"]


def test_expired_token_is_rejected():
    token = utils.create_access_token({"sub": "abc"}, expires_minutes=-1)
    assert utils.decode_token(token) is None


def test_token_signed_with_other_key_is_rejected():
    forged = jwt.encode({"sub": "abc", "type": "access"}, "otra_clave", algorithm=utils.ALGORITHM)
    assert utils.decode_token(forged) is None


def test_token_of_wrong_type_is_rejected():
    other = jwt.encode({"sub": "abc", "type": "password_reset"}, utils.SECRET_KEY, algorithm=utils.ALGORITHM)
    assert utils.decode_token(other) is None


def test_garbage_token_is_rejected():
    assert utils.decode_token("not-a-jwt") is None


def test_reset_token_only_digest_is_stored():
    token, digest = utils.create_password_reset_token()
    assert len(token) == 64
    assert digest == utils.hash_reset_token(token)
    assert digest != token
    assert utils.reset_token_expiry() > utils.utcnow()


def test_send_email_skipped_without_smtp(monkeypatch):
    monkeypatch.setattr(utils, "SMTP_HOST", None)
    assert utils.send_email("someone@physipro.com", "Hi", "body") is False
