import importlib.util
import tempfile
import unittest
from pathlib import Path

from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy import create_engine, inspect

from mosque_edu.db import Base


REVISION_PATH = Path(__file__).resolve().parents[1] / 'alembic' / 'versions' / '20261018_0001_education_core.py'


def _load_revision():
    spec = importlib.util.spec_from_file_location('education_core_revision', REVISION_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class EducationCoreMigrationTests(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self._engine = create_engine(f"sqlite:///{Path(self._tmpdir.name) / 'migration.db'}")
        self.revision = _load_revision()

    def tearDown(self):
        self._engine.dispose()
        self._tmpdir.cleanup()

    def _run(self, step):
        with self._engine.begin() as conn:
            ctx = MigrationContext.configure(conn)
            with Operations.context(ctx):
                step()

    def test_upgrade_creates_model_tables_and_downgrade_drops_them(self):
        self._run(self.revision.upgrade)
        tables = set(inspect(self._engine).get_table_names())
        self.assertTrue(set(Base.metadata.tables).issubset(tables), sorted(set(Base.metadata.tables) - tables))

        unique_sets = {
            tuple(item['column_names']) for item in inspect(self._engine).get_unique_constraints('attendance')
        }
        self.assertIn(('organization_id', 'scheduled_class_id', 'member_id', 'attendance_date'), unique_sets)

        self._run(self.revision.downgrade)
        self.assertEqual(set(inspect(self._engine).get_table_names()) & set(Base.metadata.tables), set())

    def test_revision_is_root(self):
        self.assertEqual(self.revision.revision, '20261018_0001')
        self.assertIsNone(self.revision.down_revision)


if __name__ == '__main__':
    unittest.main()
