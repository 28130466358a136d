from medrx.schemas.admin import (
    ClinicSubscriptionUpdateRequest,
    PasswordResetRequest,
    PasswordResetResponse,
    ProfileSubscriptionUpdateRequest,
    RoleUpdateRequest,
    RoleUpdateResponse,
    SubscriptionUpdateResponse,
    SweepResponse,
)
from medrx.schemas.appointment import (
    AppointmentResponse,
    AppointmentStatusUpdateRequest,
    PublicBookingRequest,
    PublicBookingResponse,
)
from medrx.schemas.notification import (
    EventEmailRequest,
    EventEmailResponse,
    NotificationConfigItem,
    SmsRequest,
    SmsResponse,
    SmtpTestRequest,
    SmtpTestResponse,
)
from medrx.schemas.subscription import (
    ClinicSubscriptionResponse,
    FeatureAccess,
    FeatureListResponse,
    SubscriptionStatusResponse,
)
from medrx.schemas.voice import (
    RecordingReleaseResponse,
    RecordingRequest,
    RecordingResponse,
    TranscriptionRequest,
    TranscriptionResponse,
)

__all__ = [
    "PasswordResetRequest",
    "PasswordResetResponse",
    "ProfileSubscriptionUpdateRequest",
    "ClinicSubscriptionUpdateRequest",
    "SubscriptionUpdateResponse",
    "RoleUpdateRequest",
    "RoleUpdateResponse",
    "SweepResponse",
    "PublicBookingRequest",
    "PublicBookingResponse",
    "AppointmentResponse",
    "AppointmentStatusUpdateRequest",
    "EventEmailRequest",
    "EventEmailResponse",
    "SmsRequest",
    "SmsResponse",
    "SmtpTestRequest",
    "SmtpTestResponse",
    "NotificationConfigItem",
    "SubscriptionStatusResponse",
    "ClinicSubscriptionResponse",
    "FeatureAccess",
    "FeatureListResponse",
    "TranscriptionRequest",
    "TranscriptionResponse",
    "RecordingRequest",
    "RecordingResponse",
    "RecordingReleaseResponse",
]
