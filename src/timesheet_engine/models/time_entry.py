"""Time entry and break models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_engine.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from timesheet_engine.models.employee import EmployeeRecord


class TimeEntryRecord(Base, TimestampMixin):
    """One employee's row for one calendar day.

    The change request is embedded as JSON: it is a proposed alternate
    version of this row, not a second entry.
    """

    __tablename__ = "time_entry"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)  # YYYY-MM-DD
    clock_in: Mapped[datetime | None] = mapped_column(nullable=True)
    clock_out: Mapped[datetime | None] = mapped_column(nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_sick_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_half_sick_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_vacation_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pending_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    change_request: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="time_entry_employee_date_unique"),
    )

    # Relationships
    employee: Mapped[EmployeeRecord] = relationship(back_populates="time_entries")
    breaks: Mapped[list[BreakRecord]] = relationship(
        back_populates="time_entry",
        order_by="BreakRecord.start_time",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class BreakRecord(Base):
    """A break interval belonging to a time entry."""

    __tablename__ = "break"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    time_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("time_entry.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(nullable=True)
    break_type: Mapped[str] = mapped_column(String, nullable=False, default="unpaid")

    time_entry: Mapped[TimeEntryRecord] = relationship(back_populates="breaks")
