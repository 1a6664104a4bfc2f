from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from dental_saas.models.anamnesis import Anamnesis
from dental_saas.models.dentist import Dentist
from dental_saas.models.patient import Patient
from dental_saas.models.treatment import Treatment, TreatmentStatus
from dental_saas.models.treatment_item import TreatmentItem
from dental_saas.models.treatment_payment import PaymentMethod, TreatmentPayment
from dental_saas.services.admin_audit import log_admin_action
from utils.dates import utcnow

logger = logging.getLogger(__name__)
TREATMENT_PREFIX = "[TREATMENT]"

ANAMNESIS_YES_NO_FIELDS = (
    "medical_treatment",
    "medication",
    "allergy",
    "pregnant",
    "breastfeeding",
    "smoker",
    "osteoporosis",
    "alcohol",
    "diabetes",
    "surgery",
    "bleeding_healing_issues",
    "blood_transfusion",
    "hypertension",
    "asthma",
    "psychological_issues",
    "pacemaker",
    "infectious_disease",
    "other_health_issues",
    "anesthesia",
    "anesthesia_reaction",
    "bleeding_after_extraction",
    "mouthwash",
    "teeth_grinding",
    "coffee_tea",
    "bleeding_gums",
    "jaw_pain",
    "mouth_breathing",
    "dental_floss",
    "tongue_cleaning",
    "sweets",
)

ANAMNESIS_TEXT_FIELDS = (
    "medical_treatment_desc",
    "medication_desc",
    "allergy_desc",
    "surgery_desc",
    "blood_transfusion_reason",
    "psychological_issues_desc",
    "infectious_disease_desc",
    "other_health_issues_desc",
    "additional_health_info",
    "last_dental_visit",
    "last_treatment",
    "brushing_frequency",
    "additional_dental_info",
)


class TreatmentError(Exception):
    def __init__(self, message: str, status_code: int = 400, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class InvalidTransition(TreatmentError):
    def __init__(self, current: str, target: str):
        super().__init__(
            f"Transição de status não permitida: {current} -> {target}",
            409,
            {"current_status": current, "requested_status": target},
        )


def _money(value) -> float:
    return float(value) if value is not None else 0.0


def item_to_dict(item: TreatmentItem) -> dict:
    return {
        "id": item.id,
        "treatment_id": item.treatment_id,
        "tooth_number": item.tooth_number,
        "procedure_description": item.procedure_description,
        "procedure_value": _money(item.procedure_value),
        "insurance_coverage": bool(item.insurance_coverage),
        "conclusion_date": item.conclusion_date,
        "created_by": item.created_by,
        "updated_by": item.updated_by,
    }


def payment_to_dict(payment: Optional[TreatmentPayment]) -> Optional[dict]:
    if payment is None:
        return None
    return {
        "id": payment.id,
        "treatment_id": payment.treatment_id,
        "total_value": _money(payment.total_value),
        "payment_method": payment.payment_method,
        "installments": payment.installments,
        "payment_date": payment.payment_date,
        "paid": payment.payment_date is not None,
        "updated_by": payment.updated_by,
    }


def anamnesis_to_dict(anamnesis: Optional[Anamnesis]) -> Optional[dict]:
    if anamnesis is None:
        return None
    data = {"id": anamnesis.id, "treatment_id": anamnesis.treatment_id, "updated_at": anamnesis.updated_at}
    for field in ANAMNESIS_YES_NO_FIELDS + ANAMNESIS_TEXT_FIELDS:
        data[field] = getattr(anamnesis, field)
    return data


def treatment_to_dict(treatment: Treatment) -> dict:
    return {
        "id": treatment.id,
        "patient_id": treatment.patient_id,
        "dentist_id": treatment.dentist_id,
        "dentist_name": treatment.dentist.name if treatment.dentist else None,
        "patient_name": treatment.patient.name if treatment.patient else None,
        "description": treatment.description,
        "status": treatment.status,
        "finalized_at": treatment.finalized_at,
        "created_by": treatment.created_by,
        "updated_by": treatment.updated_by,
        "created_at": treatment.created_at,
        "updated_at": treatment.updated_at,
    }


def treatment_aggregate(treatment: Treatment) -> dict:
    data = treatment_to_dict(treatment)
    patient = treatment.patient
    data["patient"] = (
        {"id": patient.id, "name": patient.name, "cpf": patient.cpf} if patient is not None else None
    )
    data["anamnesis"] = anamnesis_to_dict(treatment.anamnesis)
    data["items"] = [item_to_dict(item) for item in treatment.items]
    data["payment"] = payment_to_dict(treatment.payment)
    return data


def get_company_patient(db: Session, company_id: str, patient_id: int) -> Patient:
    patient = (
        db.query(Patient)
        .filter(Patient.id == patient_id, Patient.company_id == company_id)
        .first()
    )
    if patient is None:
        raise TreatmentError("Paciente não encontrado", 404)
    return patient


def get_company_treatment(db: Session, company_id: str, treatment_id: int) -> Treatment:
    treatment = (
        db.query(Treatment)
        .join(Patient, Patient.id == Treatment.patient_id)
        .filter(Treatment.id == treatment_id, Patient.company_id == company_id)
        .first()
    )
    if treatment is None:
        raise TreatmentError("Tratamento não encontrado", 404)
    return treatment


def _touch(treatment: Treatment, dentist: Dentist) -> None:
    treatment.updated_by = dentist.id
    treatment.updated_at = utcnow()


def create_treatment(db: Session, dentist: Dentist, *, patient_id: int, description: str, dentist_id: Optional[str] = None) -> Treatment:
    patient = get_company_patient(db, dentist.company_id, patient_id)

    responsible_id = dentist_id or dentist.id
    if responsible_id != dentist.id:
        responsible = (
            db.query(Dentist)
            .filter(Dentist.id == responsible_id, Dentist.company_id == dentist.company_id)
            .first()
        )
        if responsible is None:
            raise TreatmentError("Dentista não encontrado", 404)

    treatment = Treatment(
        patient_id=patient.id,
        dentist_id=responsible_id,
        description=description.strip(),
        status=TreatmentStatus.OPEN.value,
        created_by=dentist.id,
        updated_by=dentist.id,
    )
    db.add(treatment)
    db.flush()
    logger.info("%s created treatment_id=%s patient_id=%s", TREATMENT_PREFIX, treatment.id, patient.id)
    return treatment


def list_treatments(
    db: Session,
    company_id: str,
    *,
    patient_id: Optional[int] = None,
    status: Optional[TreatmentStatus] = None,
) -> list[Treatment]:
    query = (
        db.query(Treatment)
        .join(Patient, Patient.id == Treatment.patient_id)
        .filter(Patient.company_id == company_id)
    )
    if patient_id is not None:
        query = query.filter(Treatment.patient_id == patient_id)
    if status is not None:
        query = query.filter(Treatment.status == TreatmentStatus(status).value)
    return query.order_by(Treatment.created_at.desc(), Treatment.id.desc()).all()


def transition_treatment(db: Session, treatment: Treatment, dentist: Dentist, target: TreatmentStatus) -> Treatment:
    target = TreatmentStatus(target)
    if not treatment.can_transition_to(target):
        raise InvalidTransition(treatment.status, target.value)

    treatment.status = target.value
    if target == TreatmentStatus.FINALIZED:
        treatment.finalized_at = utcnow()
    _touch(treatment, dentist)
    log_admin_action(
        db,
        company_id=dentist.company_id,
        user_id=dentist.id,
        action=f"treatment_{target.value}",
        entity_type="treatment",
        entity_id=treatment.id,
    )
    db.flush()
    return treatment


def finalize_treatment(db: Session, treatment: Treatment, dentist: Dentist) -> Treatment:
    return transition_treatment(db, treatment, dentist, TreatmentStatus.FINALIZED)


def missing_anamnesis_answers(answers: dict) -> list[str]:
    return [field for field in ANAMNESIS_YES_NO_FIELDS if not isinstance(answers.get(field), bool)]


def save_anamnesis(db: Session, treatment: Treatment, dentist: Dentist, answers: dict) -> Anamnesis:
    missing = missing_anamnesis_answers(answers)
    if missing:
        raise TreatmentError(
            "Todos os campos de sim/não devem ser respondidos",
            400,
            {"missing_fields": missing},
        )

    anamnesis = db.query(Anamnesis).filter(Anamnesis.treatment_id == treatment.id).first()
    if anamnesis is None:
        anamnesis = Anamnesis(treatment_id=treatment.id)
        db.add(anamnesis)
    for field in ANAMNESIS_YES_NO_FIELDS + ANAMNESIS_TEXT_FIELDS:
        setattr(anamnesis, field, answers.get(field))
    _touch(treatment, dentist)
    db.flush()
    return anamnesis


def _apply_item_fields(item: TreatmentItem, data: dict, dentist: Dentist) -> None:
    item.tooth_number = data.get("tooth_number")
    item.procedure_description = data["procedure_description"]
    item.procedure_value = Decimal(str(data.get("procedure_value") or 0))
    item.insurance_coverage = bool(data.get("insurance_coverage"))
    item.conclusion_date = data.get("conclusion_date")
    item.updated_by = dentist.id


def private_total(items: Iterable[TreatmentItem]) -> Decimal:
    """Soma dos procedimentos não cobertos pelo convênio."""
    return sum(
        (Decimal(str(item.procedure_value or 0)) for item in items if not item.insurance_coverage),
        Decimal("0"),
    )


def save_planning(db: Session, treatment: Treatment, dentist: Dentist, items: list[dict]) -> list[TreatmentItem]:
    """Reconcilia os itens pelo id: remove os ausentes, atualiza os presentes, insere os novos."""
    existing = {
        item.id: item
        for item in db.query(TreatmentItem).filter(TreatmentItem.treatment_id == treatment.id).all()
    }

    sent_ids = [data["id"] for data in items if data.get("id") is not None]
    incoming_ids = set(sent_ids)
    if len(sent_ids) != len(incoming_ids):
        repeated = sorted({item_id for item_id in sent_ids if sent_ids.count(item_id) > 1})
        raise TreatmentError("Item repetido no planejamento", 400, {"item_ids": repeated})
    unknown = sorted(incoming_ids - set(existing))
    if unknown:
        raise TreatmentError("Item não pertence a este tratamento", 400, {"item_ids": unknown})

    for item_id, item in existing.items():
        if item_id not in incoming_ids:
            db.delete(item)

    kept: list[TreatmentItem] = []
    for data in items:
        item_id = data.get("id")
        if item_id is not None:
            item = existing[item_id]
        else:
            item = TreatmentItem(treatment_id=treatment.id, created_by=dentist.id)
            db.add(item)
        _apply_item_fields(item, data, dentist)
        kept.append(item)

    total = private_total(kept)
    payment = db.query(TreatmentPayment).filter(TreatmentPayment.treatment_id == treatment.id).first()
    if payment is None:
        payment = TreatmentPayment(
            treatment_id=treatment.id,
            total_value=total,
            payment_method=PaymentMethod.CREDIT_CARD.value,
            installments=1,
            payment_date=None,
            created_by=dentist.id,
            updated_by=dentist.id,
        )
        db.add(payment)
    else:
        payment.total_value = total
        payment.updated_by = dentist.id

    _touch(treatment, dentist)
    db.flush()
    logger.info(
        "%s planning saved treatment_id=%s items=%s removed=%s total=%s",
        TREATMENT_PREFIX,
        treatment.id,
        len(kept),
        len(set(existing) - incoming_ids),
        total,
    )
    return kept


def save_payment(db: Session, treatment: Treatment, dentist: Dentist, *, payment_method: str, installments: int, payment_date=None) -> TreatmentPayment:
    payment = db.query(TreatmentPayment).filter(TreatmentPayment.treatment_id == treatment.id).first()
    if payment is None:
        raise TreatmentError("Não foi encontrado orçamento para este tratamento", 404)

    payment.payment_method = PaymentMethod(payment_method).value
    payment.installments = installments
    payment.payment_date = payment_date
    payment.updated_by = dentist.id
    _touch(treatment, dentist)
    db.flush()
    return payment
