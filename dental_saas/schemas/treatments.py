from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, StrictBool, create_model, field_validator

from dental_saas.models.treatment_payment import ALLOWED_INSTALLMENTS, PaymentMethod
from dental_saas.schemas.common import CamelModel, CamelModelConfig
from dental_saas.services.treatments import ANAMNESIS_TEXT_FIELDS, ANAMNESIS_YES_NO_FIELDS
from utils.dates import parse_date


class TreatmentCreate(CamelModel):
    patient_id: int = Field(..., ge=1)
    description: str = Field(..., min_length=1)
    dentist_id: Optional[str] = None


# As respostas sim/não são opcionais no schema para que o serviço devolva
# a lista completa de campos faltantes em um único 400.
AnamnesisPayload = create_model(
    "AnamnesisPayload",
    __config__=CamelModelConfig,
    **{name: (Optional[StrictBool], None) for name in ANAMNESIS_YES_NO_FIELDS},
    **{name: (Optional[str], None) for name in ANAMNESIS_TEXT_FIELDS},
)


class PlanningItem(CamelModel):
    id: Optional[int] = None
    tooth_number: Optional[str] = None
    procedure_description: str = Field(..., min_length=1)
    procedure_value: Decimal = Field(default=Decimal("0"), ge=0)
    insurance_coverage: bool = False
    conclusion_date: Optional[date] = None

    @field_validator("tooth_number", mode="before")
    @classmethod
    def _tooth_as_text(cls, value):
        return str(value) if value not in (None, "") else None

    @field_validator("conclusion_date", mode="before")
    @classmethod
    def _date_only(cls, value):
        return parse_date(value)


class PlanningPayload(CamelModel):
    items: List[PlanningItem]


class PaymentPayload(CamelModel):
    payment_method: PaymentMethod
    installments: int = 1
    payment_date: Optional[date] = None

    @field_validator("installments")
    @classmethod
    def _allowed_installments(cls, value: int) -> int:
        if value not in ALLOWED_INSTALLMENTS:
            raise ValueError(f"Parcelamento inválido. Opções: {sorted(ALLOWED_INSTALLMENTS)}")
        return value

    @field_validator("payment_date", mode="before")
    @classmethod
    def _date_only(cls, value):
        return parse_date(value)


class SignedUrlRequest(CamelModel):
    file_path: str = Field(..., min_length=1)
