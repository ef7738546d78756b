"""
Protected resources: appointments, documents, reviews, doctor specializations.
"""

from careportal.resources.models import (
    Appointment,
    AppointmentStatus,
    DoctorSpecialization,
    Document,
    DocumentType,
    Review,
)
from careportal.resources.routes import router as resources_router

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "DoctorSpecialization",
    "Document",
    "DocumentType",
    "Review",
    "resources_router",
]
