"""Users API: registration, JWT login and self-service user CRUD."""

__version__ = "1.0.0"
