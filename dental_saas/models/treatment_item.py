from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from dental_saas.core.database import Base
from utils.dates import utcnow


class TreatmentItem(Base):
    __tablename__ = "treatment_items"

    id = Column(Integer, primary_key=True, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=False, index=True)
    tooth_number = Column(String(20), nullable=True)
    procedure_description = Column(Text, nullable=False)
    procedure_value = Column(Numeric(10, 2), nullable=False, default=0)
    insurance_coverage = Column(Boolean, nullable=False, default=False)
    conclusion_date = Column(Date, nullable=True)
    created_by = Column(String(36), nullable=True)
    updated_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    treatment = relationship("Treatment", back_populates="items")
