"""Patient endpoints."""

from typing import Any

from fastapi import APIRouter, Body, status

from hospitalms.api.dependencies import StoreDep
from hospitalms.api.errors import APIError, unwrap
from hospitalms.api.services.collection_service import CollectionService
from hospitalms.domain.models import Patient

router = APIRouter(prefix="/api/patients", tags=["patients"])


def _service(storage) -> CollectionService:
    return CollectionService(storage, Patient, sort_by="patient_id")


@router.get("")
@router.get("/", include_in_schema=False)
def list_patients(storage: StoreDep):
    return unwrap(_service(storage).list_all(), "Error fetching patients")


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
def bulk_create_patients(storage: StoreDep, payload: Any = Body(...)):
    """Insert an array of patients; all or nothing."""
    if not isinstance(payload, list):
        raise APIError(400, "Expected array of patients")
    created = unwrap(
        _service(storage).create_many(payload),
        "Error creating patients",
        duplicate_message="Duplicate patient_id found. Patient IDs must be unique.",
    )
    return {"message": "Patients created successfully", "count": len(created), "patients": created}


@router.get("/{patient_id}")
def get_patient(patient_id: str, storage: StoreDep):
    patient = unwrap(_service(storage).get(patient_id), "Error fetching patient")
    if patient is None:
        raise APIError(404, "Patient not found")
    return patient


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_patient(storage: StoreDep, payload: dict = Body(...)):
    service = _service(storage)
    patient_id = str(payload.get("patient_id") or "")
    if patient_id and unwrap(service.get(patient_id), "Error creating patient") is not None:
        raise APIError(400, "Patient ID already exists")
    patient = unwrap(
        service.create(payload),
        "Error creating patient",
        duplicate_message="Patient ID already exists",
    )
    return {"message": "Patient created", "patient": patient}


@router.put("/{patient_id}")
def update_patient(patient_id: str, storage: StoreDep, changes: dict = Body(...)):
    patient = unwrap(_service(storage).update(patient_id, changes), "Error updating patient")
    if patient is None:
        raise APIError(404, "Patient not found")
    return {"message": "Patient updated", "patient": patient}


@router.delete("/{patient_id}")
def delete_patient(patient_id: str, storage: StoreDep):
    patient = unwrap(_service(storage).delete(patient_id), "Error deleting patient")
    if patient is None:
        raise APIError(404, "Patient not found")
    return {"message": "Patient deleted", "patient": patient}
