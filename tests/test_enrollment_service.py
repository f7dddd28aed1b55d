import tempfile
import unittest
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from mosque_edu.core.time_provider import TimeProvider
from mosque_edu.db import Base
from mosque_edu.models import (
    Classroom,
    Enrollment,
    Member,
    MonthlyPaymentRecord,
    Organization,
    ScheduledClass,
    Teacher,
)
from mosque_edu.services.enrollment_service import (
    EnrollmentNotFoundError,
    EnrollmentRejectedError,
    EnrollmentValidationError,
    StaleEnrollmentError,
    complete_enrollment,
    enroll,
    list_enrollments,
    move_students,
    transfer_enrollment,
    withdraw,
)
from mosque_edu.services.payment_service import apply_payment


class FixedTimeProvider(TimeProvider):
    def __init__(self, frozen_dt: datetime):
        self._frozen_dt = frozen_dt

    def now(self) -> datetime:
        return self._frozen_dt


class EnrollmentServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_enrollment_service.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)
        cls._clock = FixedTimeProvider(datetime(2026, 9, 14, 8, 30, tzinfo=timezone.utc))

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        db = self._session_factory()
        try:
            for table in reversed(Base.metadata.sorted_tables):
                db.execute(table.delete())
            db.commit()
        finally:
            db.close()

    def _seed(self, db):
        db.add_all(
            [
                Organization(id=1, name='Masjid', slug='masjid'),
                Organization(id=2, name='Other Masjid', slug='other'),
            ]
        )
        db.commit()
        db.add_all(
            [
                Member(id=10, organization_id=1, first_name='Aisha', last_name='Khan'),
                Member(id=11, organization_id=1, first_name='Omar', last_name='Khan'),
                Member(id=12, organization_id=1, first_name='Yusuf', last_name='Rahman'),
                Member(id=13, organization_id=1, first_name='Maryam', last_name='Siddiqui'),
                Member(id=50, organization_id=2, first_name='Hamza', last_name='Ali'),
                Classroom(id=30, organization_id=1, name='Room A'),
                Classroom(id=31, organization_id=1, name='Room B'),
                Classroom(id=32, organization_id=1, name='Room C'),
            ]
        )
        db.commit()
        db.add_all(
            [
                ScheduledClass(id=20, organization_id=1, classroom_id=30, name='Quran 1'),
                ScheduledClass(id=23, organization_id=1, classroom_id=31, name='Quran 2 Evening'),
                ScheduledClass(id=22, organization_id=1, classroom_id=31, name='Quran 2'),
                ScheduledClass(id=60, organization_id=2, name='Elsewhere'),
                Teacher(organization_id=1, member_id=12),
            ]
        )
        db.commit()

    def test_teacher_cannot_be_enrolled(self):
        db = self._session_factory()
        try:
            self._seed(db)
            with self.assertRaises(EnrollmentRejectedError) as ctx:
                enroll(db, org_id=1, member_id=12, class_id=20, monthly_fee=50, time_provider=self._clock)
            self.assertIn('Yusuf Rahman', str(ctx.exception))
            self.assertEqual(db.query(Enrollment).count(), 0)
            self.assertEqual(db.query(MonthlyPaymentRecord).count(), 0)
        finally:
            db.close()

    def test_member_with_existing_enrollment_is_rejected(self):
        db = self._session_factory()
        try:
            self._seed(db)
            enroll(db, org_id=1, member_id=10, class_id=20, monthly_fee=50, time_provider=self._clock)
            with self.assertRaises(EnrollmentRejectedError):
                enroll(db, org_id=1, member_id=10, class_id=22, monthly_fee=50, time_provider=self._clock)
            self.assertEqual(db.query(Enrollment).count(), 1)
        finally:
            db.close()

    def test_enroll_validation(self):
        db = self._session_factory()
        try:
            self._seed(db)
            cases = [
                {'member_id': 999, 'class_id': 20},
                {'member_id': 50, 'class_id': 20},
                {'member_id': 10, 'class_id': 60},
                {'member_id': 10, 'class_id': 20, 'monthly_fee': -1},
                {'member_id': 10, 'class_id': 20, 'monthly_fee': 'ten'},
                {'member_id': 10, 'class_id': 20, 'monthly_fee': Decimal('1e40')},
                {'member_id': 10, 'class_id': 20, 'monthly_fee': '1e20'},
                {'member_id': 10, 'class_id': 20, 'monthly_fee': 100000000},
                {'member_id': 10, 'class_id': 20, 'start_date': date(2026, 5, 1), 'end_date': date(2026, 4, 1)},
            ]
            for kwargs in cases:
                with self.assertRaises(EnrollmentValidationError, msg=repr(kwargs)):
                    enroll(db, org_id=1, time_provider=self._clock, **kwargs)
            self.assertEqual(db.query(Enrollment).count(), 0)
        finally:
            db.close()

    def test_enroll_defaults(self):
        db = self._session_factory()
        try:
            self._seed(db)
            result = enroll(db, org_id=1, member_id=10, class_id=20, monthly_fee='45.5', time_provider=self._clock)
            enrollment = result.enrollment
            self.assertEqual(enrollment.monthly_fee, Decimal('45.50'))
            self.assertEqual(enrollment.enrollment_date, date(2026, 9, 14))
            self.assertEqual(enrollment.payment_status, 'Unpaid')
            self.assertEqual(enrollment.status, 'active')
            self.assertEqual(enrollment.version, 1)
            self.assertEqual([(r.year, r.month) for r in result.ledger_records], [(2026, 9), (2026, 10), (2026, 11)])
        finally:
            db.close()

    def test_transfer_keeps_ledger_and_payments(self):
        db = self._session_factory()
        try:
            self._seed(db)
            enrollment = enroll(
                db,
                org_id=1,
                member_id=10,
                class_id=20,
                monthly_fee=50,
                start_date=date(2026, 9, 1),
                end_date=date(2026, 12, 31),
                time_provider=self._clock,
            ).enrollment
            apply_payment(db, org_id=1, enrollment_id=enrollment.id, amount=50, time_provider=self._clock)

            moved = transfer_enrollment(db, org_id=1, enrollment_id=enrollment.id, new_class_id=22)

            self.assertEqual(moved.id, enrollment.id)
            self.assertEqual(moved.scheduled_class_id, 22)
            self.assertEqual(moved.version, 3)
            self.assertEqual(moved.amount_paid, Decimal('50.00'))
            rows = db.query(MonthlyPaymentRecord).filter(MonthlyPaymentRecord.enrollment_id == enrollment.id).all()
            self.assertEqual(len(rows), 4)
            self.assertEqual({row.class_id for row in rows}, {22})
            self.assertEqual(sum(row.amount_paid for row in rows), Decimal('50.00'))
        finally:
            db.close()

    def test_transfer_to_foreign_class_rejected(self):
        db = self._session_factory()
        try:
            self._seed(db)
            enrollment = enroll(db, org_id=1, member_id=10, class_id=20, time_provider=self._clock).enrollment
            with self.assertRaises(EnrollmentValidationError):
                transfer_enrollment(db, org_id=1, enrollment_id=enrollment.id, new_class_id=60)
            with self.assertRaises(EnrollmentNotFoundError):
                transfer_enrollment(db, org_id=2, enrollment_id=enrollment.id, new_class_id=60)
        finally:
            db.close()

    def test_move_students_transfers_in_place_and_creates_missing(self):
        db = self._session_factory()
        try:
            self._seed(db)
            existing = enroll(
                db,
                org_id=1,
                member_id=10,
                class_id=20,
                monthly_fee=50,
                start_date=date(2026, 9, 1),
                end_date=date(2026, 10, 31),
                time_provider=self._clock,
            ).enrollment
            existing_id = existing.id

            result = move_students(
                db,
                org_id=1,
                member_ids=[10, 13, 10],
                source_classroom_id=30,
                target_classroom_id=31,
                time_provider=self._clock,
            )

            self.assertEqual(result.target_class_id, 22)
            self.assertEqual(result.transferred_enrollment_ids, [existing_id])
            self.assertEqual(len(result.created_enrollment_ids), 1)
            rows = list_enrollments(db, org_id=1, class_id=22)
            self.assertEqual(sorted(row.member_id for row in rows), [10, 13])
            self.assertEqual(
                db.query(MonthlyPaymentRecord).filter(MonthlyPaymentRecord.enrollment_id == existing_id).count(),
                2,
            )
            self.assertEqual(list_enrollments(db, org_id=1, class_id=20), [])
        finally:
            db.close()

    def test_move_students_keeps_payments_and_ledger(self):
        db = self._session_factory()
        try:
            self._seed(db)
            enrollment = enroll(
                db,
                org_id=1,
                member_id=10,
                class_id=20,
                monthly_fee=100,
                start_date=date(2026, 8, 1),
                end_date=date(2026, 10, 31),
                time_provider=self._clock,
            ).enrollment
            enrollment_id = enrollment.id
            apply_payment(
                db,
                org_id=1,
                enrollment_id=enrollment_id,
                amount=60,
                payment_date=date(2026, 8, 10),
                time_provider=self._clock,
            )

            move_students(
                db,
                org_id=1,
                member_ids=[10],
                source_classroom_id=30,
                target_classroom_id=31,
                time_provider=self._clock,
            )

            rows = list_enrollments(db, org_id=1, member_id=10)
            self.assertEqual([row.id for row in rows], [enrollment_id])
            self.assertEqual(rows[0].scheduled_class_id, 22)
            self.assertEqual(rows[0].amount_paid, Decimal('60.00'))
            ledger = (
                db.query(MonthlyPaymentRecord)
                .filter(MonthlyPaymentRecord.enrollment_id == enrollment_id)
                .order_by(MonthlyPaymentRecord.month.asc())
                .all()
            )
            self.assertEqual([row.month for row in ledger], [8, 9, 10])
            self.assertEqual(ledger[0].amount_paid, Decimal('60.00'))
            self.assertEqual({row.class_id for row in ledger}, {22})
        finally:
            db.close()

    def test_move_students_creates_default_class_for_empty_classroom(self):
        db = self._session_factory()
        try:
            self._seed(db)
            enroll(db, org_id=1, member_id=11, class_id=20, time_provider=self._clock)

            result = move_students(
                db,
                org_id=1,
                member_ids=[11],
                source_classroom_id=30,
                target_classroom_id=32,
                time_provider=self._clock,
            )

            target = db.query(ScheduledClass).filter(ScheduledClass.id == result.target_class_id).one()
            self.assertEqual(target.classroom_id, 32)
            self.assertEqual(target.name, 'Default Class - 2026')
            self.assertEqual([row.member_id for row in list_enrollments(db, org_id=1, class_id=target.id)], [11])
        finally:
            db.close()

    def test_move_students_validation(self):
        db = self._session_factory()
        try:
            self._seed(db)
            with self.assertRaises(EnrollmentValidationError):
                move_students(db, org_id=1, member_ids=[], source_classroom_id=30, target_classroom_id=31)
            with self.assertRaises(EnrollmentValidationError):
                move_students(db, org_id=1, member_ids=[10], source_classroom_id=30, target_classroom_id=30)
            with self.assertRaises(EnrollmentValidationError):
                move_students(db, org_id=1, member_ids=[50], source_classroom_id=30, target_classroom_id=31)
            self.assertEqual(db.query(Enrollment).count(), 0)
        finally:
            db.close()

    def test_complete_and_stale_version(self):
        db = self._session_factory()
        other = self._session_factory()
        try:
            self._seed(db)
            enrollment_id = enroll(db, org_id=1, member_id=10, class_id=20, time_provider=self._clock).enrollment.id
            stale = list_enrollments(db, org_id=1)[0]
            self.assertEqual(stale.version, 1)

            completed = complete_enrollment(other, org_id=1, enrollment_id=enrollment_id)
            self.assertEqual(completed.status, 'completed')
            self.assertEqual(completed.version, 2)

            with self.assertRaises(StaleEnrollmentError):
                transfer_enrollment(db, org_id=1, enrollment_id=enrollment_id, new_class_id=22)
        finally:
            other.close()
            db.close()

    def test_withdraw_deletes_enrollment_and_ledger(self):
        db = self._session_factory()
        try:
            self._seed(db)
            enrollment_id = enroll(
                db,
                org_id=1,
                member_id=10,
                class_id=20,
                monthly_fee=50,
                time_provider=self._clock,
            ).enrollment.id
            self.assertEqual(db.query(MonthlyPaymentRecord).count(), 3)

            withdraw(db, org_id=1, enrollment_id=enrollment_id)

            self.assertEqual(db.query(Enrollment).count(), 0)
            self.assertEqual(db.query(MonthlyPaymentRecord).count(), 0)
            with self.assertRaises(EnrollmentNotFoundError):
                withdraw(db, org_id=1, enrollment_id=enrollment_id)
        finally:
            db.close()


if __name__ == '__main__':
    unittest.main()
