from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dental_saas.models.company import Company
from dental_saas.models.dentist import Dentist
from dental_saas.services.admin_audit import log_admin_action
from dental_saas.services.identity import EmailAlreadyRegistered, IdentityProvider, UserNotFound

logger = logging.getLogger(__name__)
ROSTER_PREFIX = "[ROSTER]"


class PractitionerError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def dentist_to_dict(dentist: Dentist) -> dict:
    return {
        "id": dentist.id,
        "company_id": dentist.company_id,
        "name": dentist.name,
        "email": dentist.email,
        "specialty": dentist.specialty,
        "registration_number": dentist.registration_number,
        "is_admin": bool(dentist.is_admin),
        "created_at": dentist.created_at,
        "updated_at": dentist.updated_at,
    }


def list_dentists(db: Session, company_id: str) -> list[Dentist]:
    return (
        db.query(Dentist)
        .filter(Dentist.company_id == company_id)
        .order_by(Dentist.name.asc())
        .all()
    )


def _get_company_dentist(db: Session, company_id: str, dentist_id: str) -> Dentist:
    dentist = (
        db.query(Dentist)
        .filter(Dentist.id == dentist_id, Dentist.company_id == company_id)
        .first()
    )
    if dentist is None:
        raise PractitionerError("Dentista não encontrado", 404)
    return dentist


def _create_account_and_profile(
    db: Session,
    identity: IdentityProvider,
    *,
    company_id: str,
    name: str,
    email: str,
    password: str,
    specialty: Optional[str] = None,
    registration_number: Optional[str] = None,
    is_admin: bool = False,
) -> Dentist:
    try:
        user = identity.admin_create_user(email, password)
    except EmailAlreadyRegistered as exc:
        raise PractitionerError("E-mail já cadastrado", 400) from exc

    dentist = Dentist(
        id=user.id,
        company_id=company_id,
        name=name.strip(),
        email=user.email,
        specialty=specialty,
        registration_number=registration_number,
        is_admin=is_admin,
    )
    db.add(dentist)
    try:
        with db.begin_nested():
            db.flush()
    except SQLAlchemyError as exc:
        logger.exception("%s dentist insert failed; removing account user_id=%s", ROSTER_PREFIX, user.id)
        identity.admin_delete_user(user.id)
        db.commit()
        raise PractitionerError("Erro ao criar dentista", 500) from exc
    return dentist


def register_dentist(db: Session, identity: IdentityProvider, admin: Dentist, payload) -> Dentist:
    dentist = _create_account_and_profile(
        db,
        identity,
        company_id=admin.company_id,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        specialty=payload.specialty,
        registration_number=payload.registration_number,
        is_admin=payload.is_admin,
    )
    log_admin_action(
        db,
        company_id=admin.company_id,
        user_id=admin.id,
        action="create_dentist",
        entity_type="dentist",
        entity_id=dentist.id,
        meta={"email": dentist.email, "is_admin": dentist.is_admin},
    )
    logger.info("%s dentist created dentist_id=%s", ROSTER_PREFIX, dentist.id)
    return dentist


def update_dentist(
    db: Session,
    identity: IdentityProvider,
    admin: Dentist,
    dentist_id: str,
    payload,
) -> Dentist:
    target = _get_company_dentist(db, admin.company_id, dentist_id)

    if payload.password:
        try:
            identity.admin_update_user(target.id, password=payload.password)
        except UserNotFound as exc:
            raise PractitionerError("Usuário de login não encontrado", 404) from exc

    target.name = payload.name.strip()
    target.specialty = payload.specialty
    target.registration_number = payload.registration_number
    if payload.is_admin is not None:
        target.is_admin = payload.is_admin
    db.flush()

    log_admin_action(
        db,
        company_id=admin.company_id,
        user_id=admin.id,
        action="update_dentist",
        entity_type="dentist",
        entity_id=target.id,
        meta={"is_admin": target.is_admin, "password_changed": bool(payload.password)},
    )
    return target


def delete_dentist(db: Session, identity: IdentityProvider, admin: Dentist, dentist_id: str) -> None:
    if str(dentist_id) == str(admin.id):
        raise PractitionerError("Você não pode excluir seu próprio usuário", 403)

    target = _get_company_dentist(db, admin.company_id, dentist_id)
    db.delete(target)
    db.flush()
    try:
        identity.admin_delete_user(dentist_id)
    except UserNotFound:
        logger.warning("%s login account already missing user_id=%s", ROSTER_PREFIX, dentist_id)

    log_admin_action(
        db,
        company_id=admin.company_id,
        user_id=admin.id,
        action="delete_dentist",
        entity_type="dentist",
        entity_id=dentist_id,
    )
    logger.info("%s dentist deleted dentist_id=%s", ROSTER_PREFIX, dentist_id)


def update_own_profile(db: Session, identity: IdentityProvider, dentist: Dentist, payload) -> Dentist:
    if payload.name is not None:
        dentist.name = payload.name.strip()
    if payload.specialty is not None:
        dentist.specialty = payload.specialty
    if payload.registration_number is not None:
        dentist.registration_number = payload.registration_number
    if payload.password:
        identity.admin_update_user(dentist.id, password=payload.password)
    db.flush()
    return dentist


def create_first_admin(db: Session, identity: IdentityProvider, company: Company, payload) -> Dentist:
    if db.query(Dentist.id).first() is not None:
        raise PractitionerError("Já existem dentistas cadastrados", 400)

    dentist = _create_account_and_profile(
        db,
        identity,
        company_id=company.id,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        is_admin=True,
    )
    logger.info("%s first admin created dentist_id=%s company_id=%s", ROSTER_PREFIX, dentist.id, company.id)
    return dentist
