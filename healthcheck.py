import sys

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text

from mosque_edu.cache import cache, cache_key
from mosque_edu.config import settings
from mosque_edu.db import SessionLocal, engine
from mosque_edu.models import Enrollment, MonthlyPaymentRecord, Organization
from mosque_edu.services.reconciliation_service import REVENUE_ENTRY_FAILED, list_open_issues


GREEN = '\033[32m'
YELLOW = '\033[33m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_probe (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_probe (note) VALUES ('probe')"))
        conn.execute(text("DELETE FROM _healthcheck_probe WHERE note='probe'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_probe'))
    return 'connect + write ok'


def check_alembic_head():
    cfg = Config('alembic.ini')
    script = ScriptDirectory.from_config(cfg)
    heads = set(script.get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')

    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()

    if current is None:
        raise RuntimeError('No migration version in DB (run alembic upgrade head)')
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_required_env():
    required = {
        'MOSQUE_EDU_DATABASE_URL': settings.database_url,
        'MOSQUE_EDU_EDUCATION_FUND_NAME': settings.education_fund_name,
    }
    if settings.cache_backend == 'redis':
        required['MOSQUE_EDU_CACHE_REDIS_URL'] = settings.cache_redis_url or ''
    missing = [key for key, value in required.items() if not str(value).strip()]
    if missing:
        raise RuntimeError(f'Missing env vars: {", ".join(missing)}')
    return 'all required vars present'


def check_cache_roundtrip():
    key = cache_key('healthcheck', 'probe')
    cache.set_cached(key, {'ok': True}, ttl=5)
    try:
        if cache.get_cached(key) != {'ok': True}:
            raise RuntimeError(f'{settings.cache_backend} cache did not return the probe value')
    finally:
        cache.invalidate(key)
    return f'backend={settings.cache_backend}'


def check_ledger_tables_accessible():
    db = SessionLocal()
    try:
        orgs = db.query(Organization).count()
        enrollments = db.query(Enrollment).count()
        _ = db.query(MonthlyPaymentRecord).limit(1).all()
        return f'organizations={orgs} enrollments={enrollments}'
    finally:
        db.close()


def report_open_revenue_issues():
    db = SessionLocal()
    try:
        total = 0
        for (org_id,) in db.query(Organization.id).all():
            total += len(list_open_issues(db, org_id=org_id, kind=REVENUE_ENTRY_FAILED))
    finally:
        db.close()
    if total:
        print(f'{YELLOW}WARN{RESET} {total} payment(s) are waiting for a revenue entry')
    return f'open={total}'


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Alembic migration status at head', check_alembic_head),
        ('Required environment variables present', check_required_env),
        ('Cache backend round trip', check_cache_roundtrip),
        ('Enrollment and ledger tables accessible', check_ledger_tables_accessible),
        ('Unreconciled revenue entries', report_open_revenue_issues),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
