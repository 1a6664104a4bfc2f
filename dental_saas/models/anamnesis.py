from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from dental_saas.core.database import Base
from utils.dates import utcnow


class Anamnesis(Base):
    __tablename__ = "anamnesis"

    id = Column(Integer, primary_key=True, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=False, unique=True, index=True)

    # Saúde geral
    medical_treatment = Column(Boolean, nullable=False)
    medical_treatment_desc = Column(Text, nullable=True)
    medication = Column(Boolean, nullable=False)
    medication_desc = Column(Text, nullable=True)
    allergy = Column(Boolean, nullable=False)
    allergy_desc = Column(Text, nullable=True)
    pregnant = Column(Boolean, nullable=False)
    breastfeeding = Column(Boolean, nullable=False)
    smoker = Column(Boolean, nullable=False)
    osteoporosis = Column(Boolean, nullable=False)
    alcohol = Column(Boolean, nullable=False)
    diabetes = Column(Boolean, nullable=False)
    surgery = Column(Boolean, nullable=False)
    surgery_desc = Column(Text, nullable=True)
    bleeding_healing_issues = Column(Boolean, nullable=False)
    blood_transfusion = Column(Boolean, nullable=False)
    blood_transfusion_reason = Column(Text, nullable=True)
    hypertension = Column(Boolean, nullable=False)
    asthma = Column(Boolean, nullable=False)
    psychological_issues = Column(Boolean, nullable=False)
    psychological_issues_desc = Column(Text, nullable=True)
    pacemaker = Column(Boolean, nullable=False)
    infectious_disease = Column(Boolean, nullable=False)
    infectious_disease_desc = Column(Text, nullable=True)
    other_health_issues = Column(Boolean, nullable=False)
    other_health_issues_desc = Column(Text, nullable=True)
    additional_health_info = Column(Text, nullable=True)

    # Saúde bucal
    last_dental_visit = Column(String, nullable=True)
    last_treatment = Column(String, nullable=True)
    anesthesia = Column(Boolean, nullable=False)
    anesthesia_reaction = Column(Boolean, nullable=False)
    bleeding_after_extraction = Column(Boolean, nullable=False)
    brushing_frequency = Column(String, nullable=True)
    mouthwash = Column(Boolean, nullable=False)
    teeth_grinding = Column(Boolean, nullable=False)
    coffee_tea = Column(Boolean, nullable=False)
    bleeding_gums = Column(Boolean, nullable=False)
    jaw_pain = Column(Boolean, nullable=False)
    mouth_breathing = Column(Boolean, nullable=False)
    dental_floss = Column(Boolean, nullable=False)
    tongue_cleaning = Column(Boolean, nullable=False)
    sweets = Column(Boolean, nullable=False)
    additional_dental_info = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    treatment = relationship("Treatment", back_populates="anamnesis")
