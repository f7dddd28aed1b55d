from datetime import date, time
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


AttendanceStatusLiteral = Literal['present', 'absent', 'late', 'excused', 'early_leave']


class EnrollRequest(BaseModel):
    member_id: int
    class_id: int
    monthly_fee: Decimal | None = Field(default=None, ge=0)
    start_date: date | None = None
    end_date: date | None = None


class TransferRequest(BaseModel):
    class_id: int


class MoveStudentsRequest(BaseModel):
    member_ids: list[int] = Field(min_length=1)
    target_classroom_id: int


class PaymentRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    payment_date: date | None = None
    payment_method: str = ''


class AttendanceCreateRequest(BaseModel):
    class_id: int
    member_id: int
    attendance_date: date
    status: AttendanceStatusLiteral
    notes: str | None = None
    check_in_time: time | None = None
    check_out_time: time | None = None


class AttendanceUpdateRequest(BaseModel):
    status: AttendanceStatusLiteral | None = None
    notes: str | None = None


class AttendanceBulkItem(BaseModel):
    member_id: int
    status: AttendanceStatusLiteral
    notes: str | None = None
    check_in_time: time | None = None
    check_out_time: time | None = None


class AttendanceBulkRequest(BaseModel):
    class_id: int
    attendance_date: date
    records: list[AttendanceBulkItem]


class EvaluationCreateRequest(BaseModel):
    member_id: int
    class_id: int
    score: int = Field(ge=0, le=100)
    notes: str | None = None
    evaluation_date: date | None = None


class EnrollmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    member_id: int
    scheduled_class_id: int
    monthly_fee: Decimal | None
    start_date: date | None
    end_date: date | None
    enrollment_date: date | None
    amount_paid: Decimal
    payment_status: str
    status: str
    version: int


class MonthlyPaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    enrollment_id: int
    class_id: int | None
    month: int
    year: int
    amount_due: Decimal
    amount_paid: Decimal
    payment_status: str
    payment_date: date | None


class AttendanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    scheduled_class_id: int
    member_id: int
    attendance_date: date
    status: str
    notes: str | None
    check_in_time: time | None
    check_out_time: time | None


class EvaluationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    member_id: int
    scheduled_class_id: int
    enrollment_id: int | None
    score: int
    notes: str | None
    evaluation_date: date
