from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dental_saas.core.database import get_db
from dental_saas.models.company import Company
from dental_saas.schemas.common import validate_or_400
from dental_saas.schemas.intake import CpfCheckRequest, PatientRegistration
from dental_saas.services.patient_intake import IntakeError, IntakeState, check_cpf, register_patient
from dental_saas.services.tenant_resolver import TenantResolver

router = APIRouter(prefix="/api", tags=["public-intake"])
logger = logging.getLogger(__name__)


def _public_company(company: Company) -> dict:
    return {
        "id": company.id,
        "slug": company.slug,
        "name": company.name,
        "display_name": company.display_name or company.name,
        "subtitle": company.subtitle,
        "logo_url": company.logo_url,
        "primary_color": company.primary_color,
        "registration_enabled": bool(company.is_active),
    }


def _resolve_company_or_404(db: Session, slug: str) -> Company:
    company = TenantResolver.resolve_slug(db, slug)
    if company is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empresa não encontrada")
    return company


@router.get("/companies/{slug}")
def get_public_company(slug: str, db: Session = Depends(get_db)):
    return _public_company(_resolve_company_or_404(db, slug))


@router.post("/check-cpf")
def check_patient_cpf(payload: Optional[dict] = Body(None), db: Session = Depends(get_db)):
    data = validate_or_400(CpfCheckRequest, payload)
    company = _resolve_company_or_404(db, data.company_slug)
    try:
        return check_cpf(db, data.cpf or "", company)
    except IntakeError as exc:
        raise HTTPException(status_code=exc.status_code, detail={"valid": False, "error": exc.message}) from exc


@router.post("/register-patient/{company_slug}", status_code=status.HTTP_201_CREATED)
def register_patient_for_company(
    company_slug: str,
    payload: Optional[dict] = Body(None),
    db: Session = Depends(get_db),
):
    company = _resolve_company_or_404(db, company_slug)
    if not company.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cadastro indisponível para esta empresa")

    data = validate_or_400(PatientRegistration, payload)
    try:
        patient = register_patient(db, company, data)
        db.commit()
    except IntakeError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Patient registration failed company_id=%s", company.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao cadastrar paciente. Tente novamente.",
        ) from exc

    return {
        "success": True,
        "state": IntakeState.SUCCESS.value,
        "patient": {"id": patient.id, "name": patient.name, "email": patient.email},
        "company": {"id": company.id, "slug": company.slug, "name": company.display_name or company.name},
    }
