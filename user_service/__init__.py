"""User Service: registro, autenticación y administración de cuentas ADMIN/TRAINER/STUDENT."""

__version__ = "1.0.0"
