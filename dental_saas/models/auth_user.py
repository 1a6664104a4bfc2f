from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String

from dental_saas.core.database import Base
from utils.dates import utcnow


class AuthUser(Base):
    """Credenciais de login. O perfil do dentista fica em ``dentists``."""

    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    email_confirmed = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
