from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from dental_saas.core.database import Base
from utils.dates import utcnow


class Dentist(Base):
    __tablename__ = "dentists"

    # Mesmo id do AuthUser correspondente.
    id = Column(String(36), ForeignKey("auth_users.id"), primary_key=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)
    specialty = Column(String, nullable=True)
    registration_number = Column(String, nullable=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    company = relationship("Company")
