"""Employee and tenant settings models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from timesheet_engine.models.time_entry import TimeEntryRecord


class EmployeeRecord(Base, TimestampMixin):
    """Employee row; archived employees keep is_active=False."""

    __tablename__ = "employee"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="")
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    vacation_days_total: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_bookkeeper: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    invitation_token: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    invitation_expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    invitation_accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "NOT (is_admin AND is_bookkeeper)",
            name="employee_single_capability_check",
        ),
        CheckConstraint("hourly_rate IS NULL OR hourly_rate >= 0", name="employee_rate_check"),
        CheckConstraint("vacation_days_total >= 0", name="employee_vacation_check"),
    )

    # Relationships
    time_entries: Mapped[list[TimeEntryRecord]] = relationship(back_populates="employee")


class SettingsRecord(Base, TimestampMixin):
    """Per-tenant application settings (one row per tenant)."""

    __tablename__ = "app_settings"

    tenant_id: Mapped[UUID] = mapped_column(primary_key=True)
    company_name: Mapped[str] = mapped_column(String, nullable=False, default="My Company")
    bookkeeper_email: Mapped[str] = mapped_column(String, nullable=False, default="")
    owner_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    owner_email: Mapped[str] = mapped_column(String, nullable=False, default="")
    company_logo_url: Mapped[str | None] = mapped_column(String, nullable=True)
    half_day_sick_cutoff_time: Mapped[str] = mapped_column(
        String(5), nullable=False, default="12:00"
    )
