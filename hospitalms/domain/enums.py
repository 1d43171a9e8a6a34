"""Enumerations shared by the domain models and the CSV import pipeline."""

from enum import Enum


class EntityKind(str, Enum):
    """Collections that can be bulk-imported from CSV."""
    PATIENTS = "patients"
    VISITS = "visits"
    PRESCRIPTIONS = "prescriptions"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    UNKNOWN = "Unknown"


class VisitType(str, Enum):
    """Visit type. CSV rows only ever produce OP or IP; ICU is set through the API."""
    OP = "OP"
    IP = "IP"
    ICU = "ICU"


class UserRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"


class UploadPolicy(str, Enum):
    """What the chunked uploader does when one bulk request fails.

    STOP_ON_ERROR aborts the remaining chunks and propagates the failure
    (admin patient/visit imports). CONTINUE_ON_ERROR reports the failed
    chunk and moves on (doctor prescription imports).
    """
    STOP_ON_ERROR = "stop"
    CONTINUE_ON_ERROR = "continue"


class ImportState(str, Enum):
    """Lifecycle of a single import run."""
    IDLE = "idle"
    PARSING = "parsing"
    VALIDATED = "validated"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"
