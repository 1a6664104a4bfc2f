from __future__ import annotations

from typing import Optional

from pydantic import EmailStr, Field

from dental_saas.schemas.common import CamelModel
from dental_saas.services.passwords import MIN_PASSWORD_LENGTH


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class DentistCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    specialty: Optional[str] = None
    registration_number: Optional[str] = None
    is_admin: bool = False


class DentistUpdate(CamelModel):
    name: str = Field(..., min_length=1)
    specialty: Optional[str] = None
    registration_number: Optional[str] = None
    is_admin: Optional[bool] = None
    password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH)


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    specialty: Optional[str] = None
    registration_number: Optional[str] = None
    password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH)


class CompanyInfoUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    display_name: Optional[str] = None
    subtitle: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")


class FirstAdminCreate(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    company_slug: str = Field(..., min_length=2)
