from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint

from dental_saas.core.database import Base
from utils.dates import utcnow


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = (
        UniqueConstraint("company_id", "cpf", name="uq_patients_company_cpf"),
        UniqueConstraint("company_id", "email", name="uq_patients_company_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    # Sempre 11 dígitos, sem pontuação.
    cpf = Column(String(11), nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String(20), nullable=False)
    gender = Column(String(20), nullable=True)
    birth_date = Column(Date, nullable=False)
    street = Column(String, nullable=False)
    zip_code = Column(String(8), nullable=False)
    city = Column(String, nullable=False)
    state = Column(String(2), nullable=False)
    has_insurance = Column(Boolean, nullable=False, default=False)
    insurance_name = Column(String, nullable=True)
    insurance_number = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
