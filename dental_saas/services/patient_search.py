from __future__ import annotations

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from dental_saas.models.anamnesis import Anamnesis
from dental_saas.models.patient import Patient
from dental_saas.models.treatment import Treatment
from utils.documents import only_digits

SIMPLE_SEARCH_LIMIT = 10
ADVANCED_SEARCH_MIN_LENGTH = 3
ADVANCED_SEARCH_LIMIT = 50


def patient_to_dict(patient: Patient) -> dict:
    return {
        "id": patient.id,
        "company_id": patient.company_id,
        "name": patient.name,
        "cpf": patient.cpf,
        "email": patient.email,
        "phone": patient.phone,
        "gender": patient.gender,
        "birth_date": patient.birth_date,
        "street": patient.street,
        "zip_code": patient.zip_code,
        "city": patient.city,
        "state": patient.state,
        "has_insurance": bool(patient.has_insurance),
        "insurance_name": patient.insurance_name,
        "insurance_number": patient.insurance_number,
        "created_at": patient.created_at,
    }


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column, term: str):
    return column.ilike(f"%{_escape_like(term)}%", escape="\\")


def _company_patients(db: Session, company_id: str):
    return db.query(Patient).filter(Patient.company_id == company_id)


def simple_search(db: Session, company_id: str, query: str) -> list[Patient]:
    """Busca por CPF quando há dígitos; sem resultado, cai para o nome."""
    term = (query or "").strip().lower()
    if not term:
        return []

    digits = only_digits(term)
    if digits:
        by_cpf = (
            _company_patients(db, company_id)
            .filter(_contains(Patient.cpf, digits))
            .order_by(Patient.name.asc())
            .limit(SIMPLE_SEARCH_LIMIT)
            .all()
        )
        if by_cpf:
            return by_cpf

    return (
        _company_patients(db, company_id)
        .filter(_contains(Patient.name, term))
        .order_by(Patient.name.asc())
        .limit(SIMPLE_SEARCH_LIMIT)
        .all()
    )


def advanced_search(db: Session, company_id: str, query: str) -> list[Patient]:
    term = (query or "").strip().lower()
    if len(term) < ADVANCED_SEARCH_MIN_LENGTH:
        return []

    filters = [
        _contains(Patient.cpf, term),
        _contains(Patient.name, term),
        _contains(Patient.email, term),
        _contains(Patient.phone, term),
    ]
    digits = only_digits(term)
    if digits and digits != term:
        filters.extend([_contains(Patient.cpf, digits), _contains(Patient.phone, digits)])

    # Um único OR já devolve cada paciente uma vez.
    return (
        _company_patients(db, company_id)
        .filter(or_(*filters))
        .order_by(Patient.name.asc())
        .limit(ADVANCED_SEARCH_LIMIT)
        .all()
    )


def get_patient(db: Session, company_id: str, patient_id: int) -> Optional[Patient]:
    return _company_patients(db, company_id).filter(Patient.id == patient_id).first()


def patient_treatments(db: Session, patient: Patient) -> list[Treatment]:
    return (
        db.query(Treatment)
        .filter(Treatment.patient_id == patient.id)
        .order_by(Treatment.created_at.desc(), Treatment.id.desc())
        .all()
    )


def latest_anamnesis(db: Session, patient: Patient) -> Optional[Anamnesis]:
    return (
        db.query(Anamnesis)
        .join(Treatment, Treatment.id == Anamnesis.treatment_id)
        .filter(Treatment.patient_id == patient.id)
        .order_by(Treatment.created_at.desc(), Treatment.id.desc())
        .first()
    )
