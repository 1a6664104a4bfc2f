from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from dental_saas.schemas.common import CamelModel
from utils.documents import (
    CEP_LENGTH,
    PHONE_MAX_DIGITS,
    PHONE_MIN_DIGITS,
    is_valid_cpf_length,
    normalize_cpf,
    only_digits,
)


class CpfCheckRequest(CamelModel):
    cpf: Optional[str] = None
    company_slug: str = Field(..., min_length=1)


class PatientRegistration(CamelModel):
    name: str = Field(..., min_length=1)
    cpf: str
    email: EmailStr
    phone: str
    gender: Optional[str] = None
    birth_date: date
    street: str = Field(..., min_length=1)
    zip_code: str
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2, max_length=2)
    insurance_name: Optional[str] = None
    insurance_number: Optional[str] = None

    @field_validator("cpf")
    @classmethod
    def _cpf_has_11_digits(cls, value: str) -> str:
        if not is_valid_cpf_length(value):
            raise ValueError("CPF deve ter 11 dígitos")
        return normalize_cpf(value)

    @field_validator("phone")
    @classmethod
    def _phone_digits(cls, value: str) -> str:
        digits = only_digits(value)
        if not PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS:
            raise ValueError(f"Telefone deve ter entre {PHONE_MIN_DIGITS} e {PHONE_MAX_DIGITS} dígitos")
        return digits

    @field_validator("zip_code")
    @classmethod
    def _cep_digits(cls, value: str) -> str:
        digits = only_digits(value)
        if len(digits) != CEP_LENGTH:
            raise ValueError(f"CEP deve ter {CEP_LENGTH} dígitos")
        return digits

    @field_validator("insurance_name", "gender")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @field_validator("insurance_number")
    @classmethod
    def _insurance_number_digits(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        digits = only_digits(value)
        if not digits:
            raise ValueError("Número do convênio deve conter dígitos")
        return digits

    @model_validator(mode="after")
    def _insurance_fields_together(self) -> "PatientRegistration":
        if bool(self.insurance_name) != bool(self.insurance_number):
            raise ValueError("Nome e número do convênio devem ser informados juntos")
        return self
