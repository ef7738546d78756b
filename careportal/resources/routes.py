"""
Resource routes - appointments, documents, reviews, doctor specializations.

Every handler follows the same shape:
    1. authenticate (required or optional)
    2. load the record, 404 on a miss
    3. require_access() with the record's descriptor
    4. do the work

Persistence is the generic MetadataStorage; these routes carry no
scheduling, file storage, or rating logic.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from careportal.auth.context import AuthContext
from careportal.auth.errors import ConflictError, NotFoundError, TokenError
from careportal.auth.gate import authenticate, authenticate_optional
from careportal.auth.policies import (
    Action,
    authorize,
    effective_subject,
    require_access,
    require_roles,
)
from careportal.core.models import Role
from careportal.resources.models import (
    DOCTOR_DOCUMENT_TYPES,
    Appointment,
    AppointmentStatus,
    DoctorSpecialization,
    Document,
    DocumentType,
    Review,
    Specialization,
)
from careportal.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_metadata(request: Request) -> MetadataStorage:
    return request.app.state.storage.metadata


# =============================================================================
# Request Models
# =============================================================================


class BookAppointmentRequest(BaseModel):
    doctor_id: int = Field(ge=1)
    appointment_date: date
    appointment_time: str = Field(pattern=r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")
    reason_for_visit: str = Field(min_length=5, max_length=500)
    consultation_fee: float | None = Field(default=None, ge=0)
    patient_id: int | None = None  # honoured for admins only


class AppointmentStatusRequest(BaseModel):
    status: AppointmentStatus


class ConsultationNotesRequest(BaseModel):
    consultation_notes: str = Field(min_length=1, max_length=5000)


class CreateDocumentRequest(BaseModel):
    document_name: str = Field(min_length=1, max_length=255)
    document_type: DocumentType = DocumentType.OTHER
    description: str | None = None
    is_public: bool = False
    patient_id: int | None = None  # ignored for patients


class UpdateDocumentRequest(BaseModel):
    description: str | None = None
    is_public: bool | None = None


class CreateReviewRequest(BaseModel):
    doctor_id: int = Field(ge=1)
    appointment_id: int | None = None
    rating: int = Field(ge=1, le=5)
    review_text: str | None = Field(default=None, max_length=2000)


class UpdateReviewRequest(BaseModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    review_text: str | None = Field(default=None, max_length=2000)


class ReviewResponseRequest(BaseModel):
    response_text: str = Field(min_length=1, max_length=2000)


class SpecializationRequest(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class DoctorSpecializationRequest(BaseModel):
    specialization_id: int = Field(ge=1)
    years_experience: int | None = Field(default=None, ge=0)
    certification: str | None = None
    doctor_id: int | None = None  # honoured for admins only


class UpdateDoctorSpecializationRequest(BaseModel):
    years_experience: int | None = Field(default=None, ge=0)
    certification: str | None = None
    doctor_id: int | None = None  # honoured for admins only


# =============================================================================
# Lookups (404 before authorization)
# =============================================================================


async def _load_appointment(metadata: MetadataStorage, appointment_id: int) -> Appointment:
    doc = await metadata.get(Collections.APPOINTMENTS, appointment_id)
    if not doc:
        raise NotFoundError("Appointment not found")
    return Appointment(**doc)


async def _load_document(metadata: MetadataStorage, document_id: int) -> Document:
    doc = await metadata.get(Collections.DOCUMENTS, document_id)
    if not doc:
        raise NotFoundError("Document not found")
    return Document(**doc)


async def _load_review(metadata: MetadataStorage, review_id: int) -> Review:
    doc = await metadata.get(Collections.REVIEWS, review_id)
    if not doc:
        raise NotFoundError("Review not found")
    return Review(**doc)


async def _load_specialization(metadata: MetadataStorage, specialization_id: int) -> Specialization:
    doc = await metadata.get(Collections.SPECIALIZATIONS, specialization_id)
    if not doc:
        raise NotFoundError("Specialization not found")
    return Specialization(**doc)


async def _load_doctor_specialization(
    metadata: MetadataStorage,
    doctor_id: int,
    specialization_id: int,
) -> DoctorSpecialization:
    matches = await metadata.query(
        Collections.DOCTOR_SPECIALIZATIONS,
        {"doctor_id": doctor_id, "specialization_id": specialization_id},
        limit=1,
    )
    if not matches:
        raise NotFoundError("Doctor specialization not found")
    return DoctorSpecialization(**matches[0])


# =============================================================================
# Appointments
# =============================================================================


@router.post("/appointments", status_code=201)
async def book_appointment(
    data: BookAppointmentRequest,
    ctx: AuthContext = Depends(require_roles(Role.PATIENT)),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """Book an appointment. Patients book for themselves."""
    appointment = Appointment(
        id=await metadata.next_id(Collections.APPOINTMENTS),
        patient_id=effective_subject(ctx, data.patient_id),
        **data.model_dump(exclude={"patient_id"}),
    )
    await metadata.save(Collections.APPOINTMENTS, appointment.id, appointment.model_dump(mode="json"))
    return {"appointment": appointment}


@router.get("/appointments")
async def list_my_appointments(
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """The caller's appointments, as patient or as doctor."""
    if ctx.is_admin:
        filters = None
    else:
        filters = {f"{ctx.role.value}_id": ctx.id}
    appointments = await metadata.query(Collections.APPOINTMENTS, filters)
    return {"appointments": appointments, "count": len(appointments)}


@router.get("/appointments/patient/{patient_id}")
async def list_patient_appointments(
    patient_id: int,
    ctx: AuthContext = Depends(require_roles(Role.DOCTOR)),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """All appointments of one patient (doctors and admins)."""
    appointments = await metadata.query(Collections.APPOINTMENTS, {"patient_id": patient_id})
    return {"appointments": appointments, "count": len(appointments)}


@router.get("/appointments/{appointment_id}")
async def get_appointment(
    appointment_id: int,
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    appointment = await _load_appointment(metadata, appointment_id)
    require_access(ctx, appointment.descriptor())
    return {"appointment": appointment}


@router.put("/appointments/{appointment_id}/status")
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusRequest,
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """Either party may change status, each only in their own capacity."""
    appointment = await _load_appointment(metadata, appointment_id)
    require_access(
        ctx,
        appointment.descriptor().restricted_to(ctx.role.value),
        action=Action.WRITE,
    )
    await metadata.update(Collections.APPOINTMENTS, appointment_id, {"status": data.status.value})
    return {"appointment": appointment.model_copy(update={"status": data.status})}


@router.put("/appointments/{appointment_id}/notes")
async def add_consultation_notes(
    appointment_id: int,
    data: ConsultationNotesRequest,
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """Only the assigned doctor writes consultation notes."""
    appointment = await _load_appointment(metadata, appointment_id)
    require_access(
        ctx,
        appointment.descriptor().restricted_to("doctor"),
        required_roles={Role.DOCTOR},
        action=Action.WRITE,
    )
    await metadata.update(
        Collections.APPOINTMENTS,
        appointment_id,
        {"consultation_notes": data.consultation_notes},
    )
    return {"appointment": appointment.model_copy(update={"consultation_notes": data.consultation_notes})}


# =============================================================================
# Documents
# =============================================================================


@router.post("/documents", status_code=201)
async def create_document(
    data: CreateDocumentRequest,
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """
    Register an uploaded document.

    A patient's upload always concerns that patient. Resumes and
    certifications are doctor documents.
    """
    if data.document_type in DOCTOR_DOCUMENT_TYPES:
        require_access(ctx, required_roles={Role.DOCTOR})

    if ctx.is_patient or data.patient_id is None:
        patient_id = ctx.id
    else:
        patient_id = data.patient_id

    document = Document(
        id=await metadata.next_id(Collections.DOCUMENTS),
        patient_id=patient_id,
        uploaded_by=ctx.id,
        **data.model_dump(exclude={"patient_id"}),
    )
    await metadata.save(Collections.DOCUMENTS, document.id, document.model_dump(mode="json"))
    return {"document": document}


@router.get("/documents/public/{user_id}")
async def list_public_documents(
    user_id: int,
    ctx: AuthContext | None = Depends(authenticate_optional),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """Public documents (resumes, certifications) of a principal. No login needed."""
    documents = await metadata.query(
        Collections.DOCUMENTS,
        {"patient_id": user_id, "is_public": True},
    )
    return {"documents": documents, "count": len(documents)}


@router.get("/documents/{document_id}")
async def get_document(
    document_id: int,
    ctx: AuthContext | None = Depends(authenticate_optional),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """Readable by its patient, its uploader, or anyone if public."""
    document = await _load_document(metadata, document_id)
    decision = authorize(ctx, document.descriptor())
    if not decision and ctx is None:
        raise TokenError("missing")
    decision.raise_for_denial()
    return {"document": document}


@router.put("/documents/{document_id}")
async def update_document(
    document_id: int,
    data: UpdateDocumentRequest,
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    document = await _load_document(metadata, document_id)
    require_access(ctx, document.descriptor().restricted_to("uploader"), action=Action.WRITE)

    updates = data.model_dump(exclude_none=True)
    await metadata.update(Collections.DOCUMENTS, document_id, updates)
    return {"document": document.model_copy(update=updates)}


@router.delete("/documents/{document_id}")
async def delete_document(
    document_id: int,
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    document = await _load_document(metadata, document_id)
    require_access(ctx, document.descriptor().restricted_to("uploader"), action=Action.WRITE)
    await metadata.delete(Collections.DOCUMENTS, document_id)
    return {"message": "Document deleted successfully"}


# =============================================================================
# Reviews
# =============================================================================


@router.post("/reviews", status_code=201)
async def create_review(
    data: CreateReviewRequest,
    ctx: AuthContext = Depends(require_roles(Role.PATIENT)),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """One review per patient per doctor."""
    existing = await metadata.query(
        Collections.REVIEWS,
        {"patient_id": ctx.id, "doctor_id": data.doctor_id},
        limit=1,
    )
    if existing:
        raise ConflictError("You have already reviewed this doctor")

    review = Review(
        id=await metadata.next_id(Collections.REVIEWS),
        patient_id=ctx.id,
        **data.model_dump(),
    )
    await metadata.save(Collections.REVIEWS, review.id, review.model_dump(mode="json"))
    return {"review": review}


@router.get("/reviews/{review_id}")
async def get_review(
    review_id: int,
    ctx: AuthContext | None = Depends(authenticate_optional),
    metadata: MetadataStorage = Depends(get_metadata),
):
    review = await _load_review(metadata, review_id)
    require_access(ctx, review.descriptor())
    return {"review": review}


@router.put("/reviews/{review_id}")
async def update_review(
    review_id: int,
    data: UpdateReviewRequest,
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    review = await _load_review(metadata, review_id)
    require_access(
        ctx,
        review.descriptor().restricted_to("patient"),
        required_roles={Role.PATIENT},
        action=Action.WRITE,
    )
    updates = data.model_dump(exclude_none=True)
    await metadata.update(Collections.REVIEWS, review_id, updates)
    return {"review": review.model_copy(update=updates)}


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: int,
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    review = await _load_review(metadata, review_id)
    require_access(
        ctx,
        review.descriptor().restricted_to("patient"),
        required_roles={Role.PATIENT},
        action=Action.WRITE,
    )
    await metadata.delete(Collections.REVIEWS, review_id)
    return {"message": "Review deleted successfully"}


@router.post("/reviews/{review_id}/response", status_code=201)
async def respond_to_review(
    review_id: int,
    data: ReviewResponseRequest,
    ctx: AuthContext = Depends(authenticate),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """The reviewed doctor may reply once."""
    review = await _load_review(metadata, review_id)
    require_access(
        ctx,
        review.descriptor().restricted_to("doctor"),
        required_roles={Role.DOCTOR},
        action=Action.WRITE,
    )
    if review.response_text:
        raise ConflictError("Response already exists. Use update instead.")

    await metadata.update(Collections.REVIEWS, review_id, {"response_text": data.response_text})
    return {"review": review.model_copy(update={"response_text": data.response_text})}


# =============================================================================
# Specialization catalog
# =============================================================================


async def _ensure_unique_name(metadata: MetadataStorage, name: str, exclude_id: int | None = None):
    matches = await metadata.query(Collections.SPECIALIZATIONS, {"name": name}, limit=2)
    if any(m["id"] != exclude_id for m in matches):
        raise ConflictError("Specialization with this name already exists")


@router.get("/specializations")
async def list_specializations(metadata: MetadataStorage = Depends(get_metadata)):
    """Public catalog."""
    specializations = await metadata.query(Collections.SPECIALIZATIONS, limit=1000)
    return {"specializations": specializations, "count": len(specializations)}


@router.get("/specializations/{specialization_id}")
async def get_specialization(
    specialization_id: int,
    metadata: MetadataStorage = Depends(get_metadata),
):
    return {"specialization": await _load_specialization(metadata, specialization_id)}


@router.post("/specializations", status_code=201)
async def create_specialization(
    data: SpecializationRequest,
    ctx: AuthContext = Depends(require_roles(Role.ADMIN)),
    metadata: MetadataStorage = Depends(get_metadata),
):
    name = data.name.strip()
    await _ensure_unique_name(metadata, name)

    specialization = Specialization(
        id=await metadata.next_id(Collections.SPECIALIZATIONS),
        name=name,
        description=data.description,
    )
    await metadata.save(Collections.SPECIALIZATIONS, specialization.id, specialization.model_dump(mode="json"))
    logger.info(f"Admin {ctx.id} created specialization {specialization.id}")
    return {"specialization": specialization}


@router.put("/specializations/{specialization_id}")
async def update_specialization(
    specialization_id: int,
    data: SpecializationRequest,
    ctx: AuthContext = Depends(require_roles(Role.ADMIN)),
    metadata: MetadataStorage = Depends(get_metadata),
):
    specialization = await _load_specialization(metadata, specialization_id)
    name = data.name.strip()
    await _ensure_unique_name(metadata, name, exclude_id=specialization_id)

    updates = {"name": name, "description": data.description}
    await metadata.update(Collections.SPECIALIZATIONS, specialization_id, updates)
    return {"specialization": specialization.model_copy(update=updates)}


@router.delete("/specializations/{specialization_id}")
async def delete_specialization(
    specialization_id: int,
    ctx: AuthContext = Depends(require_roles(Role.ADMIN)),
    metadata: MetadataStorage = Depends(get_metadata),
):
    await _load_specialization(metadata, specialization_id)
    await metadata.delete(Collections.SPECIALIZATIONS, specialization_id)
    logger.info(f"Admin {ctx.id} deleted specialization {specialization_id}")
    return {"message": "Specialization deleted successfully"}


# =============================================================================
# Doctor specializations
# =============================================================================


@router.post("/specializations/doctor", status_code=201)
async def add_doctor_specialization(
    data: DoctorSpecializationRequest,
    ctx: AuthContext = Depends(require_roles(Role.DOCTOR)),
    metadata: MetadataStorage = Depends(get_metadata),
):
    """Doctors add their own; admins may name the doctor."""
    doctor_id = effective_subject(ctx, data.doctor_id)

    existing = await metadata.query(
        Collections.DOCTOR_SPECIALIZATIONS,
        {"doctor_id": doctor_id, "specialization_id": data.specialization_id},
        limit=1,
    )
    if existing:
        raise ConflictError("Doctor already has this specialization")

    specialization = DoctorSpecialization(
        id=await metadata.next_id(Collections.DOCTOR_SPECIALIZATIONS),
        doctor_id=doctor_id,
        **data.model_dump(exclude={"doctor_id"}),
    )
    await metadata.save(
        Collections.DOCTOR_SPECIALIZATIONS,
        specialization.id,
        specialization.model_dump(mode="json"),
    )
    return {"doctor_specialization": specialization}


@router.put("/specializations/doctor/{specialization_id}")
async def update_doctor_specialization(
    specialization_id: int,
    data: UpdateDoctorSpecializationRequest,
    ctx: AuthContext = Depends(require_roles(Role.DOCTOR)),
    metadata: MetadataStorage = Depends(get_metadata),
):
    doctor_id = effective_subject(ctx, data.doctor_id)
    specialization = await _load_doctor_specialization(metadata, doctor_id, specialization_id)
    require_access(
        ctx,
        specialization.descriptor(),
        required_roles={Role.DOCTOR},
        action=Action.WRITE,
        on_behalf_of=data.doctor_id,
    )
    updates = data.model_dump(exclude_none=True, exclude={"doctor_id"})
    await metadata.update(Collections.DOCTOR_SPECIALIZATIONS, specialization.id, updates)
    return {"doctor_specialization": specialization.model_copy(update=updates)}


@router.delete("/specializations/doctor/{specialization_id}")
async def remove_doctor_specialization(
    specialization_id: int,
    doctor_id: int | None = None,
    ctx: AuthContext = Depends(require_roles(Role.DOCTOR)),
    metadata: MetadataStorage = Depends(get_metadata),
):
    target = effective_subject(ctx, doctor_id)
    specialization = await _load_doctor_specialization(metadata, target, specialization_id)
    require_access(
        ctx,
        specialization.descriptor(),
        required_roles={Role.DOCTOR},
        action=Action.WRITE,
        on_behalf_of=doctor_id,
    )
    await metadata.delete(Collections.DOCTOR_SPECIALIZATIONS, specialization.id)
    return {"message": "Specialization removed from doctor successfully"}


@router.get("/specializations/doctor/{doctor_id}/list")
async def list_doctor_specializations(
    doctor_id: int,
    metadata: MetadataStorage = Depends(get_metadata),
):
    """Public listing."""
    specializations = await metadata.query(
        Collections.DOCTOR_SPECIALIZATIONS,
        {"doctor_id": doctor_id},
    )
    return {"specializations": specializations, "count": len(specializations)}
