from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from dental_saas.core.database import get_db
from dental_saas.deps import get_current_dentist
from dental_saas.models.dentist import Dentist
from dental_saas.services.patient_search import (
    advanced_search,
    get_patient,
    latest_anamnesis,
    patient_to_dict,
    patient_treatments,
    simple_search,
)
from dental_saas.services.treatments import anamnesis_to_dict, treatment_to_dict

router = APIRouter(prefix="/api/admin/patients", tags=["admin-patients"])


@router.get("/search")
def search_patients(
    query: str = Query("", max_length=100),
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    return [patient_to_dict(patient) for patient in simple_search(db, dentist.company_id, query)]


@router.get("/advanced-search")
def advanced_search_patients(
    query: str = Query("", max_length=100),
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    return [patient_to_dict(patient) for patient in advanced_search(db, dentist.company_id, query)]


@router.get("/{patient_id}")
def get_patient_detail(
    patient_id: int,
    include_treatments: bool = False,
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    patient = get_patient(db, dentist.company_id, patient_id)
    if patient is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paciente não encontrado")

    data = patient_to_dict(patient)
    if include_treatments:
        data["treatments"] = [treatment_to_dict(entry) for entry in patient_treatments(db, patient)]
        data["latest_anamnesis"] = anamnesis_to_dict(latest_anamnesis(db, patient))
    return data
