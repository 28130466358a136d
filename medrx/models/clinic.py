from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from medrx.models.base import TimestampedBase


class Clinic(TimestampedBase):
    __tablename__ = "clinics"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True, index=True)
    subscription_status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending_approval")
    subscription_tier: Mapped[str] = mapped_column(String(30), nullable=False, default="enterprise")
    billing_cycle: Mapped[str | None] = mapped_column(String(20), nullable=True)
    subscription_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    subscription_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_doctors: Mapped[int] = mapped_column(nullable=False, default=5)
    max_patients: Mapped[int] = mapped_column(nullable=False, default=1000)
