"""
Resource records guarded by the decision engine.

Each record knows how to describe itself to `authorize()`: who owns it
(by relation) and whether it is publicly readable.
"""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from careportal.auth.policies import ResourceDescriptor


# =============================================================================
# Enums
# =============================================================================


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DocumentType(str, Enum):
    MEDICAL_RECORD = "medical_record"
    LAB_RESULT = "lab_result"
    PRESCRIPTION = "prescription"
    RESUME = "resume"                # Doctor-only, usually public
    CERTIFICATION = "certification"  # Doctor-only, usually public
    OTHER = "other"


DOCTOR_DOCUMENT_TYPES = {DocumentType.RESUME, DocumentType.CERTIFICATION}


# =============================================================================
# Appointments
# =============================================================================


class Appointment(BaseModel):
    """A booking between a patient and a doctor. Both own it."""

    id: int
    patient_id: int
    doctor_id: int
    appointment_date: date
    appointment_time: str = Field(pattern=r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
    reason_for_visit: str
    consultation_fee: float | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    consultation_notes: str | None = None

    def descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            resource_type="appointment",
            owners={"patient": self.patient_id, "doctor": self.doctor_id},
        )


# =============================================================================
# Documents
# =============================================================================


class Document(BaseModel):
    """
    Uploaded document metadata. File bytes live elsewhere.

    Owned by the patient it concerns and by whoever uploaded it.
    """

    id: int
    patient_id: int
    uploaded_by: int
    document_name: str
    document_type: DocumentType = DocumentType.OTHER
    description: str | None = None
    is_public: bool = False

    def descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            resource_type="document",
            owners={"patient": self.patient_id, "uploader": self.uploaded_by},
            is_public=self.is_public,
        )


# =============================================================================
# Reviews
# =============================================================================


class Review(BaseModel):
    """A patient's published review of a doctor."""

    id: int
    patient_id: int
    doctor_id: int
    appointment_id: int | None = None
    rating: int = Field(ge=1, le=5)
    review_text: str | None = None
    response_text: str | None = None  # the reviewed doctor's reply

    def descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            resource_type="review",
            owners={"patient": self.patient_id, "doctor": self.doctor_id},
            is_public=True,
        )


# =============================================================================
# Specializations
# =============================================================================


class DoctorSpecialization(BaseModel):
    """A specialization claimed by a doctor; listed publicly."""

    id: int
    doctor_id: int
    specialization_id: int
    years_experience: int | None = Field(default=None, ge=0)
    certification: str | None = None

    def descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            resource_type="doctor_specialization",
            owners={"doctor": self.doctor_id},
            is_public=True,
        )


class Specialization(BaseModel):
    """Catalog entry doctors can claim. Managed by admins, browsed by anyone."""

    id: int
    name: str
    description: str | None = None
