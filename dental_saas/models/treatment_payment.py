import enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from dental_saas.core.database import Base
from utils.dates import utcnow


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BOLETO = "boleto"
    PIX = "pix"


ALLOWED_INSTALLMENTS = {1, 2, 3, 4, 5, 6, 10}


class TreatmentPayment(Base):
    __tablename__ = "treatment_payment"

    id = Column(Integer, primary_key=True, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=False, unique=True, index=True)
    total_value = Column(Numeric(10, 2), nullable=False, default=0)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CREDIT_CARD.value)
    installments = Column(Integer, nullable=False, default=1)
    # Preenchida quando o orçamento foi pago.
    payment_date = Column(Date, nullable=True)
    created_by = Column(String(36), nullable=True)
    updated_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    treatment = relationship("Treatment", back_populates="payment")
