from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class EventEmailRequest(BaseModel):
    event_type: str = Field(min_length=1, max_length=60)
    recipient_email: EmailStr
    recipient_name: str | None = None
    template_data: dict[str, str] = Field(default_factory=dict)


class EventEmailResponse(BaseModel):
    success: bool
    message: str | None = None
    message_id: str | None = None


class SmsRequest(BaseModel):
    phone_number: str = Field(min_length=6, max_length=30)
    message: str = Field(min_length=1, max_length=1000)


class SmsResponse(BaseModel):
    success: bool
    message: str
    code: int | None = None


class SmtpTestRequest(BaseModel):
    to: EmailStr | None = None
    subject: str = "SMTP test"
    body: str = "This is a test email from your SMTP configuration."


class SmtpTestResponse(BaseModel):
    success: bool
    message: str
    host: str
    port: int
    from_email: str


class NotificationConfigItem(BaseModel):
    event_type: str = Field(min_length=1, max_length=60)
    channel: str = Field(pattern="^(email|sms)$")
    is_enabled: bool
