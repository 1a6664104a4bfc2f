from __future__ import annotations

from typing import Optional

from pydantic import EmailStr, Field, model_validator

from dental_saas.schemas.common import CamelModel
from dental_saas.services.passwords import MIN_PASSWORD_LENGTH
from utils.slug import normalize_slug, validate_company_slug


class CheckoutCreate(CamelModel):
    customer_email: EmailStr
    customer_name: str = Field(..., min_length=1)
    price_id: str = Field(..., min_length=1)
    dentist_count: int = Field(..., ge=1)
    company_id: Optional[str] = None
    company_name: Optional[str] = None


class AccountPayload(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    name: str = Field(..., min_length=1)


class CompanyPayload(CamelModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    display_name: Optional[str] = None
    subtitle: Optional[str] = None

    @model_validator(mode="after")
    def _valid_slug(self) -> "CompanyPayload":
        # Sem slug informado, deriva do nome da clínica.
        normalized = (self.slug or "").lower() or normalize_slug(self.name)
        if not validate_company_slug(normalized):
            raise ValueError("Slug inválido: use letras minúsculas, números e hífens (2 a 50 caracteres)")
        self.slug = normalized
        return self


class SelectedPlan(CamelModel):
    id: int


class CheckoutComplete(CamelModel):
    session_id: str = Field(..., min_length=1)
    account_data: AccountPayload
    company_data: CompanyPayload
    selected_plan: Optional[SelectedPlan] = None
    dentist_count: int = Field(1, ge=1)


class PortalRequest(CamelModel):
    return_url: str = Field(..., min_length=1)


class TaxRequest(CamelModel):
    price_id: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1)
