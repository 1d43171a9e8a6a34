"""Doctor endpoints.

Doctor ids are assigned by the server (DOC001, DOC002, ...). Passwords are
stored but never returned.
"""

import logging
import re
from typing import Any

from fastapi import APIRouter, Body, status

from hospitalms.api.dependencies import StoreDep
from hospitalms.api.errors import APIError, unwrap
from hospitalms.api.services.collection_service import CollectionService
from hospitalms.domain.models import Doctor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctors", tags=["doctors"])

REQUIRED_FIELDS = ("doctor_name", "user_id", "password", "doctor_speciality")
_DOCTOR_NUMBER = re.compile(r"^DOC(\d+)$")


def _service(storage) -> CollectionService:
    return CollectionService(storage, Doctor, sort_by="doctor_id")


def public(doctor: dict) -> dict:
    return {k: v for k, v in doctor.items() if k != "password"}


def next_doctor_id(doctors: list[dict]) -> str:
    """DOC + (highest existing number + 1), zero-padded to three digits."""
    numbers = [
        int(match.group(1))
        for match in (_DOCTOR_NUMBER.match(str(doc.get("doctor_id", ""))) for doc in doctors)
        if match
    ]
    return f"DOC{str(max(numbers, default=0) + 1).zfill(3)}"


@router.get("")
@router.get("/", include_in_schema=False)
def list_doctors(storage: StoreDep):
    return [public(doc) for doc in unwrap(_service(storage).list_all(), "Error fetching doctors")]


@router.get("/specialty/{specialty}")
def list_doctors_by_specialty(specialty: str, storage: StoreDep):
    doctors = unwrap(
        _service(storage).list_by("doctor_speciality", specialty, sort_by="doctor_name", descending=False),
        "Error fetching doctors by specialty",
    )
    return [public(doc) for doc in doctors]


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
def bulk_create_doctors(storage: StoreDep, payload: Any = Body(...)):
    if not isinstance(payload, list):
        raise APIError(400, "Expected array of doctors")
    created = unwrap(
        _service(storage).create_many(payload),
        "Error creating doctors",
        duplicate_message="Duplicate doctor_id found. Doctor IDs must be unique.",
    )
    return {"message": "Doctors created successfully", "count": len(created), "doctors": [public(d) for d in created]}


@router.get("/{doctor_id}")
def get_doctor(doctor_id: str, storage: StoreDep):
    doctor = unwrap(_service(storage).get(doctor_id), "Error fetching doctor")
    if doctor is None:
        raise APIError(404, "Doctor not found")
    return public(doctor)


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_doctor(storage: StoreDep, payload: dict = Body(...)):
    """Create a doctor with the next free DOCnnn id."""
    if not all(payload.get(field) for field in REQUIRED_FIELDS):
        raise APIError(
            400,
            "Missing required fields: doctor_name, user_id, password, doctor_speciality are required",
        )

    service = _service(storage)
    if unwrap(service.exists("user_id", payload["user_id"]), "Error creating doctor"):
        raise APIError(400, "User ID already exists. Please choose a different user ID.")

    doctors = unwrap(service.list_all(), "Error creating doctor")
    document = {field: payload[field] for field in REQUIRED_FIELDS}
    document["doctor_id"] = next_doctor_id(doctors)

    doctor = unwrap(
        service.create(document),
        "Error creating doctor",
        duplicate_message="Doctor ID already exists",
    )
    logger.info(f"Doctor created: {doctor['doctor_id']}")
    return {"message": "Doctor created successfully", "doctor": public(doctor)}


@router.put("/{doctor_id}")
def update_doctor(doctor_id: str, storage: StoreDep, changes: dict = Body(...)):
    doctor = unwrap(_service(storage).update(doctor_id, changes), "Error updating doctor")
    if doctor is None:
        raise APIError(404, "Doctor not found", doctorId=doctor_id)
    return {"message": "Doctor updated successfully", "doctor": public(doctor)}


@router.delete("/{doctor_id}")
def delete_doctor(doctor_id: str, storage: StoreDep):
    doctor = unwrap(_service(storage).delete(doctor_id), "Error deleting doctor")
    if doctor is None:
        raise APIError(404, "Doctor not found", doctorId=doctor_id)
    return {"message": "Doctor deleted successfully", "doctor": public(doctor)}
