from medrx.core.repositories.appointments import AppointmentRepository
from medrx.core.repositories.base import DoctorScopedRepository, ProfileContextMissingError
from medrx.core.repositories.patients import PatientRepository

__all__ = [
    "ProfileContextMissingError",
    "DoctorScopedRepository",
    "AppointmentRepository",
    "PatientRepository",
]
