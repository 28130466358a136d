from medrx.models.appointment import Appointment
from medrx.models.base import Base, DoctorScopedBase, TimestampedBase
from medrx.models.clinic import Clinic
from medrx.models.notification_config import EmailTemplate, NotificationConfig, SmtpSettings
from medrx.models.patient import Patient
from medrx.models.profile import Profile
from medrx.models.user_role import RoleAudit, UserRole

__all__ = [
    "Base",
    "TimestampedBase",
    "DoctorScopedBase",
    "Profile",
    "Clinic",
    "UserRole",
    "RoleAudit",
    "Patient",
    "Appointment",
    "NotificationConfig",
    "EmailTemplate",
    "SmtpSettings",
]
