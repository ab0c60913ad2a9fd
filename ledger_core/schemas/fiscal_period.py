"""
Pydantic schemas for fiscal periods.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from ledger_core.models.enums import PeriodType, PeriodStatus


class FiscalPeriodCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    period_type: PeriodType
    fiscal_year: int = Field(ge=1900, le=9999)
    start_date: date
    end_date: date
    status: PeriodStatus = PeriodStatus.OPEN
    tenant_id: int | None = None


class FiscalPeriodResponse(BaseModel):
    id: int
    name: str
    period_type: PeriodType
    fiscal_year: int
    start_date: date
    end_date: date
    status: PeriodStatus
    closed_at: datetime | None
    closed_by: int | None

    model_config = {"from_attributes": True}
