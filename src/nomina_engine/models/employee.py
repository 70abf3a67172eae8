"""Employee model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from nomina_engine.models.base import Base, TimestampMixin


class Employee(Base, TimestampMixin):
    """Employee record.

    Maintained by the HR system; the engine only reads it and writes back
    the refreshed ``integrated_daily_salary``.
    """

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_number: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    collar_type: Mapped[str] = mapped_column(String, nullable=False, default="white_collar")
    daily_salary: Mapped[Decimal] = mapped_column(nullable=False)
    integrated_daily_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False, default="biweekly")
    employment_status: Mapped[str] = mapped_column(String, nullable=False, default="active")
    is_sindicalizado: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # INFONAVIT housing credit
    infonavit_credit: Mapped[str | None] = mapped_column(String, nullable=True)
    infonavit_deduction_type: Mapped[str | None] = mapped_column(String, nullable=True)
    infonavit_deduction_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "collar_type IN ('white_collar', 'blue_collar_union', 'blue_collar_non_union')",
            name="employee_collar_type_check",
        ),
        CheckConstraint(
            "pay_frequency IN ('weekly', 'biweekly', 'monthly')",
            name="employee_pay_frequency_check",
        ),
        CheckConstraint(
            "employment_status IN ('active', 'inactive', 'terminated', 'on_leave')",
            name="employee_status_check",
        ),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"
