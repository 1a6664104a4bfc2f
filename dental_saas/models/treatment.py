import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from dental_saas.core.database import Base
from utils.dates import utcnow


class TreatmentStatus(str, enum.Enum):
    OPEN = "open"
    FINALIZED = "finalized"


# Único caminho permitido: aberto -> finalizado. Finalizado é terminal.
TREATMENT_TRANSITIONS = {
    TreatmentStatus.OPEN: {TreatmentStatus.FINALIZED},
    TreatmentStatus.FINALIZED: set(),
}


class Treatment(Base):
    __tablename__ = "treatments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    # Sem FK: excluir um dentista mantém o histórico de tratamentos.
    dentist_id = Column(String(36), nullable=False, index=True)
    description = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=TreatmentStatus.OPEN.value, index=True)
    created_by = Column(String(36), nullable=True)
    updated_by = Column(String(36), nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    patient = relationship("Patient")
    dentist = relationship("Dentist", primaryjoin="foreign(Treatment.dentist_id) == Dentist.id")
    anamnesis = relationship("Anamnesis", uselist=False, back_populates="treatment")
    items = relationship("TreatmentItem", back_populates="treatment", order_by="TreatmentItem.id")
    payment = relationship("TreatmentPayment", uselist=False, back_populates="treatment")
    files = relationship("TreatmentFile", back_populates="treatment")

    def can_transition_to(self, new_status: TreatmentStatus) -> bool:
        return new_status in TREATMENT_TRANSITIONS.get(TreatmentStatus(self.status), set())
