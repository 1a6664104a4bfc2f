"""Autocadastro público de pacientes, sempre no escopo de uma clínica."""
from __future__ import annotations

import enum
import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dental_saas.models.company import Company
from dental_saas.models.patient import Patient
from utils.documents import is_valid_cpf_length, normalize_cpf, only_digits

logger = logging.getLogger(__name__)
INTAKE_PREFIX = "[INTAKE]"

DUPLICATE_EMAIL_MESSAGE = "E-mail já cadastrado nesta empresa"
DUPLICATE_CPF_MESSAGE = "CPF já cadastrado nesta empresa"


class IntakeState(str, enum.Enum):
    CPF_ENTRY = "cpf-entry"
    ALREADY_EXISTS = "already-exists"
    REGISTRATION_FORM = "registration-form"
    SUCCESS = "success"


INTAKE_TRANSITIONS = {
    IntakeState.CPF_ENTRY: {IntakeState.ALREADY_EXISTS, IntakeState.REGISTRATION_FORM},
    IntakeState.ALREADY_EXISTS: set(),
    IntakeState.REGISTRATION_FORM: {IntakeState.SUCCESS},
    IntakeState.SUCCESS: set(),
}


def can_transition(current: IntakeState, target: IntakeState) -> bool:
    # Voltar ao início é sempre permitido.
    if target == IntakeState.CPF_ENTRY:
        return True
    return target in INTAKE_TRANSITIONS[current]


class IntakeError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DuplicatePatient(IntakeError):
    pass


def find_patient_by_cpf(db: Session, cpf: str, company_id: str) -> Optional[Patient]:
    return (
        db.query(Patient)
        .filter(Patient.company_id == company_id, Patient.cpf == normalize_cpf(cpf))
        .first()
    )


def check_cpf(db: Session, cpf: str, company: Company) -> dict:
    """Primeira etapa do fluxo: decide entre 'já cadastrado' e formulário."""
    digits = normalize_cpf(cpf)
    if not digits:
        raise IntakeError("CPF não fornecido")
    if not is_valid_cpf_length(digits):
        raise IntakeError("CPF deve ter 11 dígitos")

    existing = find_patient_by_cpf(db, digits, company.id)
    if existing:
        return {"valid": False, "state": IntakeState.ALREADY_EXISTS.value, "message": "CPF já cadastrado"}
    return {"valid": True, "state": IntakeState.REGISTRATION_FORM.value, "cpf": digits}


def _duplicate_message(db: Session, company_id: str, email: str, cpf: str) -> Optional[str]:
    existing = (
        db.query(Patient)
        .filter(
            Patient.company_id == company_id,
            or_(Patient.email == email, Patient.cpf == cpf),
        )
        .first()
    )
    if existing is None:
        return None
    if existing.email == email:
        return DUPLICATE_EMAIL_MESSAGE
    return DUPLICATE_CPF_MESSAGE


def register_patient(db: Session, company: Company, payload) -> Patient:
    """Cria o paciente. ``payload`` já passou pela validação do schema."""
    cpf = normalize_cpf(payload.cpf)
    email = payload.email.strip().lower()

    message = _duplicate_message(db, company.id, email, cpf)
    if message:
        raise DuplicatePatient(message)

    patient = Patient(
        company_id=company.id,
        cpf=cpf,
        name=payload.name.strip(),
        email=email,
        phone=only_digits(payload.phone),
        gender=payload.gender,
        birth_date=payload.birth_date,
        street=payload.street.strip(),
        zip_code=only_digits(payload.zip_code),
        city=payload.city.strip(),
        state=payload.state.strip().upper(),
        has_insurance=bool(payload.insurance_name),
        insurance_name=payload.insurance_name or None,
        insurance_number=payload.insurance_number,
    )
    db.add(patient)
    try:
        db.flush()
    except IntegrityError as exc:
        # Cadastro concorrente passou pela checagem; a constraint decide.
        db.rollback()
        message = _duplicate_message(db, company.id, email, cpf) or DUPLICATE_CPF_MESSAGE
        raise DuplicatePatient(message) from exc

    logger.info("%s patient registered patient_id=%s company_id=%s", INTAKE_PREFIX, patient.id, company.id)
    return patient
