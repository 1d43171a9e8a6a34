"""Domain Model Definitions.

This module defines the canonical document models for the five hospital
collections. The same models validate API request bodies, shape CSV-imported
records and describe what the document store persists.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Field names are the wire names used by the API and the CSV columns
    - Each model declares its collection name and unique key field
    - Unknown fields are ignored rather than persisted
"""

from datetime import datetime, timezone
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hospitalms.domain.enums import Gender, UserRole, VisitType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HospitalDocument(BaseModel):
    """Base class for every stored document.

    Subclasses set ``collection`` (the store collection name), ``key_field``
    (the unique identifier attribute) and ``entity_name`` (used in
    user-facing messages such as "Patient not found").
    """

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    collection: ClassVar[str] = ""
    key_field: ClassVar[str] = ""
    entity_name: ClassVar[str] = ""

    @property
    def key(self) -> str:
        """Value of this document's unique identifier."""
        return getattr(self, self.key_field)

    def to_document(self) -> dict:
        """Serialize to a JSON-compatible dictionary for persistence."""
        return self.model_dump(mode="json")


class Patient(HospitalDocument):
    """Patient demographic record.

    Parameters:
        patient_id: Unique patient identifier (e.g. PAT00001)
        full_name: Patient full name
        age: Age in years
        gender: Male, Female, Other or Unknown
        chronic_conditions: Ordered list of condition names ("None" when empty)
        registration_date: Registration date as YYYY-MM-DD
    """

    collection: ClassVar[str] = "patients"
    key_field: ClassVar[str] = "patient_id"
    entity_name: ClassVar[str] = "Patient"

    patient_id: str = Field(..., min_length=1, description="Unique patient identifier")
    full_name: str = Field(..., description="Patient full name")
    age: int = Field(default=0, ge=0, description="Age in years")
    gender: Gender = Field(default=Gender.UNKNOWN, description="Gender")
    blood_group: str = Field(default="O+", description="Blood group")
    phone_number: str = Field(default="0000000000", description="Phone number")
    email: str = Field(default="", description="Email address")
    emergency_contact: str = Field(default="0000000000", description="Emergency contact phone")
    hospital_location: str = Field(default="Main Hospital", description="Registering hospital")
    bmi: float = Field(default=22.5, description="Body mass index")
    smoker_status: bool = False
    alcohol_use: bool = False
    chronic_conditions: list[str] = Field(default_factory=lambda: ["None"])
    registration_date: str = Field(..., description="Registration date (YYYY-MM-DD)")
    insurance_type: str = Field(default="Basic", description="Insurance plan")

    @field_validator("gender", mode="before")
    @classmethod
    def normalize_gender(cls, v):
        """Map anything outside the allowed literals to Unknown."""
        if v in {g.value for g in Gender} or isinstance(v, Gender):
            return v
        return Gender.UNKNOWN


class Doctor(HospitalDocument):
    """Doctor account. ``doctor_id`` is assigned by the API (DOC001, DOC002, ...)."""

    collection: ClassVar[str] = "doctors"
    key_field: ClassVar[str] = "doctor_id"
    entity_name: ClassVar[str] = "Doctor"

    doctor_id: str = Field(..., min_length=1)
    doctor_name: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    doctor_speciality: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=_utcnow)


class Visit(HospitalDocument):
    """Patient visit handled by a doctor.

    ``severity_score`` is bounded 0-5 by the model; the CSV validator reports
    out-of-range scores itself before a model is ever built.
    """

    collection: ClassVar[str] = "visits"
    key_field: ClassVar[str] = "visit_id"
    entity_name: ClassVar[str] = "Visit"

    visit_id: str = Field(..., min_length=1)
    patient_id: str = Field(..., min_length=1)
    doctor_id: str = Field(..., min_length=1)
    visit_date: str = Field(..., description="Visit date (YYYY-MM-DD)")
    severity_score: int = Field(..., ge=0, le=5)
    visit_type: VisitType = VisitType.OP
    length_of_stay: int = 0
    lab_result_glucose: float = 0
    lab_result_bp: str = Field(default="120/80", description="Blood pressure as systolic/diastolic")
    previous_visit_gap_days: int = 0
    readmitted_30_days: bool = False
    visit_cost: float = 0


class Prescription(HospitalDocument):
    """Drug prescription issued during a visit."""

    collection: ClassVar[str] = "prescriptions"
    key_field: ClassVar[str] = "prescription_id"
    entity_name: ClassVar[str] = "Prescription"

    prescription_id: str = Field(..., min_length=1)
    visit_id: str = Field(..., min_length=1)
    patient_id: str = Field(..., min_length=1)
    doctor_id: str = Field(..., min_length=1)
    diagnosis_id: str = ""
    diagnosis_description: str = ""
    drug_name: str = Field(..., min_length=1)
    drug_category: str = ""
    dosage: str = ""
    quantity: int = 1
    days_supply: int = 7
    prescribed_date: str = Field(..., description="Prescription date (YYYY-MM-DD)")
    cost: float = 0


class User(HospitalDocument):
    """Portal user account."""

    collection: ClassVar[str] = "users"
    key_field: ClassVar[str] = "user_id"
    entity_name: ClassVar[str] = "User"

    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    role: UserRole = UserRole.PATIENT
    created_at: datetime = Field(default_factory=_utcnow)
    is_active: bool = True


MODELS_BY_COLLECTION: dict[str, type[HospitalDocument]] = {
    model.collection: model for model in (Patient, Doctor, Visit, Prescription, User)
}


def model_for(collection: str) -> type[HospitalDocument]:
    """Look up the document model for a collection name.

    Raises:
        KeyError: If the collection is unknown
    """
    return MODELS_BY_COLLECTION[collection]


def key_field_for(collection: str) -> str:
    return model_for(collection).key_field
