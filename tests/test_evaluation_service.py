import tempfile
import unittest
from datetime import date, datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from mosque_edu.core.time_provider import TimeProvider
from mosque_edu.db import Base
from mosque_edu.models import Evaluation, Member, Organization, ScheduledClass
from mosque_edu.services.enrollment_service import enroll
from mosque_edu.services.evaluation_service import (
    EvaluationValidationError,
    create_evaluation,
    evaluation_summary,
    list_evaluations,
)


class FixedTimeProvider(TimeProvider):
    def __init__(self, frozen_dt: datetime):
        self._frozen_dt = frozen_dt

    def now(self) -> datetime:
        return self._frozen_dt


class EvaluationServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_evaluation_service.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)
        cls._clock = FixedTimeProvider(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        db = self._session_factory()
        try:
            for table in reversed(Base.metadata.sorted_tables):
                db.execute(table.delete())
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
                    Member(id=50, organization_id=2, first_name='Hamza'),
                    ScheduledClass(id=20, organization_id=1, name='Quran 1'),
                    ScheduledClass(id=21, organization_id=1, name='Arabic 1'),
                ]
            )
            db.commit()
        finally:
            db.close()

    def test_create_links_enrollment_and_defaults_date(self):
        db = self._session_factory()
        try:
            enrollment = enroll(db, org_id=1, member_id=10, class_id=20, time_provider=self._clock).enrollment
            row = create_evaluation(db, org_id=1, member_id=10, class_id=20, score=88, time_provider=self._clock)
            self.assertEqual(row.enrollment_id, enrollment.id)
            self.assertEqual(row.evaluation_date, date(2026, 10, 18))

            unlinked = create_evaluation(db, org_id=1, member_id=11, class_id=21, score='70', time_provider=self._clock)
            self.assertIsNone(unlinked.enrollment_id)
            self.assertEqual(unlinked.score, 70)
        finally:
            db.close()

    def test_score_and_scope_validation(self):
        db = self._session_factory()
        try:
            for kwargs in (
                {'member_id': 10, 'class_id': 20, 'score': 101},
                {'member_id': 10, 'class_id': 20, 'score': -1},
                {'member_id': 10, 'class_id': 20, 'score': 85.5},
                {'member_id': 10, 'class_id': 20, 'score': 'great'},
                {'member_id': 10, 'class_id': 20, 'score': True},
                {'member_id': 50, 'class_id': 20, 'score': 80},
                {'member_id': 10, 'class_id': 999, 'score': 80},
            ):
                with self.assertRaises(EvaluationValidationError, msg=repr(kwargs)):
                    create_evaluation(db, org_id=1, time_provider=self._clock, **kwargs)
            self.assertEqual(db.query(Evaluation).count(), 0)
        finally:
            db.close()

    def test_list_and_summary(self):
        db = self._session_factory()
        try:
            for score, day, class_id in ((70, 1, 20), (85, 8, 20), (92, 15, 20), (60, 20, 21)):
                create_evaluation(
                    db,
                    org_id=1,
                    member_id=10,
                    class_id=class_id,
                    score=score,
                    evaluation_date=date(2026, 9, day),
                )

            rows = list_evaluations(db, org_id=1, member_id=10, class_id=20)
            self.assertEqual([row.score for row in rows], [92, 85, 70])
            self.assertEqual(len(list_evaluations(db, org_id=1, class_id=21)), 1)

            summary = evaluation_summary(db, org_id=1, member_id=10, class_id=20)
            self.assertEqual(summary['count'], 3)
            self.assertEqual(summary['average_score'], 82.3)
            self.assertEqual(summary['highest'], 92)
            self.assertEqual(summary['lowest'], 70)
            self.assertEqual(summary['latest_date'], date(2026, 9, 15))

            empty = evaluation_summary(db, org_id=1, member_id=11)
            self.assertEqual(empty, {'count': 0, 'average_score': 0.0, 'highest': None, 'lowest': None, 'latest_date': None})
        finally:
            db.close()


if __name__ == '__main__':
    unittest.main()
