from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mosque_edu.db import Base


MONEY = Numeric(10, 2, asdecimal=True)


class EnrollmentPaymentStatus(str, Enum):
    UNPAID = 'Unpaid'
    PARTIAL = 'Partial'
    PAID = 'Paid'


class MonthlyPaymentStatus(str, Enum):
    UNPAID = 'Unpaid'
    PAID = 'Paid'


class EnrollmentStatus(str, Enum):
    ACTIVE = 'active'
    COMPLETED = 'completed'
    WITHDRAWN = 'withdrawn'


class AttendanceStatus(str, Enum):
    PRESENT = 'present'
    ABSENT = 'absent'
    LATE = 'late'
    EXCUSED = 'excused'
    EARLY_LEAVE = 'early_leave'


class Organization(Base):
    __tablename__ = 'organizations'
    __table_args__ = (
        UniqueConstraint('slug', name='uq_organizations_slug'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(180))
    slug: Mapped[str] = mapped_column(String(120), index=True)
    # Set once by fund provisioning, referenced by every tuition payment.
    education_fund_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Member(Base):
    __tablename__ = 'members'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    first_name: Mapped[str] = mapped_column(String(120))
    last_name: Mapped[str] = mapped_column(String(120), default='')
    household_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    enrollments: Mapped[list['Enrollment']] = relationship('Enrollment', back_populates='member')

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Teacher(Base):
    __tablename__ = 'teachers'
    __table_args__ = (
        UniqueConstraint('organization_id', 'member_id', name='uq_teachers_org_member'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey('members.id', ondelete='CASCADE'), index=True)
    teacher_color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Classroom(Base):
    __tablename__ = 'classrooms'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    name: Mapped[str] = mapped_column(String(120))
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    classes: Mapped[list['ScheduledClass']] = relationship('ScheduledClass', back_populates='classroom')


class Course(Base):
    __tablename__ = 'courses'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    name: Mapped[str] = mapped_column(String(160))
    tuition_fee: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default='USD')


class ScheduledClass(Base):
    __tablename__ = 'scheduled_classes'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    classroom_id: Mapped[int | None] = mapped_column(ForeignKey('classrooms.id', ondelete='SET NULL'), nullable=True, index=True)
    course_id: Mapped[int | None] = mapped_column(ForeignKey('courses.id', ondelete='SET NULL'), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(160))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    classroom: Mapped['Classroom | None'] = relationship('Classroom', back_populates='classes')
    course: Mapped['Course | None'] = relationship('Course')


class Enrollment(Base):
    __tablename__ = 'enrollments'
    __table_args__ = (
        Index('ix_enrollments_org_member', 'organization_id', 'member_id'),
        Index('ix_enrollments_org_class', 'organization_id', 'scheduled_class_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey('members.id', ondelete='CASCADE'))
    scheduled_class_id: Mapped[int] = mapped_column(ForeignKey('scheduled_classes.id', ondelete='CASCADE'))
    monthly_fee: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    enrollment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    amount_paid: Mapped[Decimal] = mapped_column(MONEY, default=Decimal('0.00'))
    payment_status: Mapped[str] = mapped_column(String(20), default=EnrollmentPaymentStatus.UNPAID.value)
    status: Mapped[str] = mapped_column(String(20), default=EnrollmentStatus.ACTIVE.value, index=True)
    # Compare-and-swap guard for amount_paid updates.
    version: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    member: Mapped['Member'] = relationship('Member', back_populates='enrollments')
    scheduled_class: Mapped['ScheduledClass'] = relationship('ScheduledClass')
    monthly_payments: Mapped[list['MonthlyPaymentRecord']] = relationship(
        'MonthlyPaymentRecord',
        back_populates='enrollment',
        cascade='all, delete-orphan',
        passive_deletes=True,
        order_by=lambda: [MonthlyPaymentRecord.year, MonthlyPaymentRecord.month],
    )


class MonthlyPaymentRecord(Base):
    __tablename__ = 'tuition_monthly_payments'
    __table_args__ = (
        UniqueConstraint('enrollment_id', 'month', 'year', name='uq_tuition_monthly_payments_enrollment_month'),
        Index('ix_tuition_monthly_payments_org_status', 'organization_id', 'payment_status'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    enrollment_id: Mapped[int] = mapped_column(ForeignKey('enrollments.id', ondelete='CASCADE'), index=True)
    class_id: Mapped[int | None] = mapped_column(ForeignKey('scheduled_classes.id', ondelete='SET NULL'), nullable=True, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey('members.id', ondelete='CASCADE'), index=True)
    month: Mapped[int] = mapped_column(Integer)
    year: Mapped[int] = mapped_column(Integer)
    amount_due: Mapped[Decimal] = mapped_column(MONEY, default=Decimal('0.00'))
    amount_paid: Mapped[Decimal] = mapped_column(MONEY, default=Decimal('0.00'))
    payment_status: Mapped[str] = mapped_column(String(20), default=MonthlyPaymentStatus.UNPAID.value)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    enrollment: Mapped['Enrollment'] = relationship('Enrollment', back_populates='monthly_payments')


class AttendanceRecord(Base):
    __tablename__ = 'attendance'
    __table_args__ = (
        UniqueConstraint(
            'organization_id',
            'scheduled_class_id',
            'member_id',
            'attendance_date',
            name='uq_attendance_org_class_member_date',
        ),
        Index('ix_attendance_org_member_date', 'organization_id', 'member_id', 'attendance_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    scheduled_class_id: Mapped[int] = mapped_column(ForeignKey('scheduled_classes.id', ondelete='CASCADE'), index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey('members.id', ondelete='CASCADE'))
    attendance_date: Mapped[date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20))
    check_in_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    check_out_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    member: Mapped['Member'] = relationship('Member')


class Evaluation(Base):
    __tablename__ = 'evaluations'
    __table_args__ = (
        Index('ix_evaluations_org_member', 'organization_id', 'member_id'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    enrollment_id: Mapped[int | None] = mapped_column(ForeignKey('enrollments.id', ondelete='SET NULL'), nullable=True)
    member_id: Mapped[int] = mapped_column(ForeignKey('members.id', ondelete='CASCADE'))
    scheduled_class_id: Mapped[int] = mapped_column(ForeignKey('scheduled_classes.id', ondelete='CASCADE'), index=True)
    score: Mapped[int] = mapped_column(Integer)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    evaluation_date: Mapped[date] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Fund(Base):
    __tablename__ = 'organization_funds'
    __table_args__ = (
        UniqueConstraint('organization_id', 'name', name='uq_organization_funds_org_name'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    name: Mapped[str] = mapped_column(String(120))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Donation(Base):
    __tablename__ = 'donations'
    __table_args__ = (
        Index('ix_donations_org_date', 'organization_id', 'donation_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    member_id: Mapped[int | None] = mapped_column(ForeignKey('members.id', ondelete='SET NULL'), nullable=True, index=True)
    household_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fund_id: Mapped[int] = mapped_column(ForeignKey('organization_funds.id'), index=True)
    enrollment_id: Mapped[int | None] = mapped_column(ForeignKey('enrollments.id', ondelete='SET NULL'), nullable=True)
    amount: Mapped[Decimal] = mapped_column(MONEY)
    payment_method: Mapped[str] = mapped_column(String(40), default='cash')
    donation_date: Mapped[date] = mapped_column(Date)
    notes: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ReconciliationIssue(Base):
    __tablename__ = 'reconciliation_issues'
    __table_args__ = (
        Index('ix_reconciliation_issues_org_kind_created', 'organization_id', 'kind', 'created_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey('organizations.id', ondelete='CASCADE'), index=True)
    kind: Mapped[str] = mapped_column(String(60), index=True)
    entity_type: Mapped[str] = mapped_column(String(50), default='')
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
