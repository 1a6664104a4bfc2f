from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dental_saas.core.database import get_db
from dental_saas.deps import get_current_dentist, get_identity_provider, require_admin
from dental_saas.models.dentist import Dentist
from dental_saas.schemas.dentists import (
    CompanyInfoUpdate,
    DentistCreate,
    DentistUpdate,
    FirstAdminCreate,
    ProfileUpdate,
)
from dental_saas.services.admin_audit import log_admin_action
from dental_saas.services.identity import IdentityProvider, UserNotFound
from dental_saas.services.practitioners import (
    PractitionerError,
    create_first_admin,
    delete_dentist,
    dentist_to_dict,
    list_dentists,
    register_dentist,
    update_dentist,
    update_own_profile,
)
from dental_saas.services.tenant_resolver import TenantResolver

router = APIRouter(prefix="/api/admin", tags=["admin-dentists"])
logger = logging.getLogger(__name__)


def _company_info(company) -> dict:
    return {
        "id": company.id,
        "slug": company.slug,
        "name": company.name,
        "display_name": company.display_name,
        "subtitle": company.subtitle,
        "logo_url": company.logo_url,
        "primary_color": company.primary_color,
        "is_active": bool(company.is_active),
    }


def _commit_or_500(db: Session, message: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Commit failed: %s", message)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message) from exc


@router.get("/profile")
def get_profile(dentist: Dentist = Depends(get_current_dentist)):
    return dentist_to_dict(dentist)


@router.put("/profile")
def put_profile(
    payload: ProfileUpdate,
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        update_own_profile(db, identity, dentist, payload)
    except UserNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário de login não encontrado") from exc
    _commit_or_500(db, "Erro ao atualizar perfil")
    return dentist_to_dict(dentist)


@router.get("/company-info")
def get_company_info(dentist: Dentist = Depends(get_current_dentist)):
    if dentist.company is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empresa não encontrada")
    return _company_info(dentist.company)


@router.put("/company-info")
def put_company_info(
    payload: CompanyInfoUpdate,
    admin: Dentist = Depends(require_admin),
    db: Session = Depends(get_db),
):
    company = admin.company
    if company is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empresa não encontrada")

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(company, field, value)
    log_admin_action(
        db,
        company_id=company.id,
        user_id=admin.id,
        action="update_company_info",
        entity_type="company",
        entity_id=company.id,
        meta={"fields": sorted(changes)},
    )
    _commit_or_500(db, "Erro ao atualizar dados da empresa")
    return _company_info(company)


@router.get("/dentists")
def get_dentists(admin: Dentist = Depends(require_admin), db: Session = Depends(get_db)):
    return [dentist_to_dict(entry) for entry in list_dentists(db, admin.company_id)]


@router.post("/dentists", status_code=status.HTTP_201_CREATED)
def create_dentist(
    payload: DentistCreate,
    admin: Dentist = Depends(require_admin),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        dentist = register_dentist(db, identity, admin, payload)
    except PractitionerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    _commit_or_500(db, "Erro ao criar dentista")
    return dentist_to_dict(dentist)


@router.put("/dentists/{dentist_id}")
def put_dentist(
    dentist_id: str,
    payload: DentistUpdate,
    admin: Dentist = Depends(require_admin),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        dentist = update_dentist(db, identity, admin, dentist_id, payload)
    except PractitionerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    _commit_or_500(db, "Erro ao atualizar dentista")
    return dentist_to_dict(dentist)


@router.delete("/dentists/{dentist_id}")
def remove_dentist(
    dentist_id: str,
    admin: Dentist = Depends(require_admin),
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        delete_dentist(db, identity, admin, dentist_id)
    except PractitionerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    _commit_or_500(db, "Erro ao excluir dentista")
    return {"success": True}


@router.post("/create-first-admin", status_code=status.HTTP_201_CREATED)
def post_first_admin(
    payload: FirstAdminCreate,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    company = TenantResolver.resolve_slug(db, payload.company_slug)
    if company is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empresa não encontrada")
    try:
        dentist = create_first_admin(db, identity, company, payload)
    except PractitionerError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    _commit_or_500(db, "Erro ao criar administrador")
    return {"success": True, "dentist": dentist_to_dict(dentist)}
