"""education core: enrollments, tuition ledger, attendance, evaluations

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261018_0001'
down_revision = None
branch_labels = None
depends_on = None


def _money(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(10, 2), **kwargs)


def upgrade() -> None:
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=180), nullable=False),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('education_fund_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('slug', name='uq_organizations_slug'),
    )
    op.create_index('ix_organizations_slug', 'organizations', ['slug'])

    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('first_name', sa.String(length=120), nullable=False),
        sa.Column('last_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('household_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_members_organization_id', 'members', ['organization_id'])
    op.create_index('ix_members_household_id', 'members', ['household_id'])

    op.create_table(
        'teachers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('teacher_color', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('organization_id', 'member_id', name='uq_teachers_org_member'),
    )

    op.create_table(
        'classrooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
    )

    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=160), nullable=False),
        _money('tuition_fee', nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
    )

    op.create_table(
        'scheduled_classes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('classroom_id', sa.Integer(), sa.ForeignKey('classrooms.id', ondelete='SET NULL'), nullable=True),
        sa.Column('course_id', sa.Integer(), sa.ForeignKey('courses.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(length=160), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_scheduled_classes_classroom_id', 'scheduled_classes', ['classroom_id'])

    op.create_table(
        'enrollments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('scheduled_class_id', sa.Integer(), sa.ForeignKey('scheduled_classes.id', ondelete='CASCADE'), nullable=False),
        _money('monthly_fee', nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('enrollment_date', sa.Date(), nullable=True),
        _money('amount_paid', nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='Unpaid'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_enrollments_org_member', 'enrollments', ['organization_id', 'member_id'])
    op.create_index('ix_enrollments_org_class', 'enrollments', ['organization_id', 'scheduled_class_id'])
    op.create_index('ix_enrollments_status', 'enrollments', ['status'])

    op.create_table(
        'tuition_monthly_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('enrollment_id', sa.Integer(), sa.ForeignKey('enrollments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('scheduled_classes.id', ondelete='SET NULL'), nullable=True),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        _money('amount_due', nullable=False, server_default='0'),
        _money('amount_paid', nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='Unpaid'),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('enrollment_id', 'month', 'year', name='uq_tuition_monthly_payments_enrollment_month'),
    )
    op.create_index(
        'ix_tuition_monthly_payments_org_status',
        'tuition_monthly_payments',
        ['organization_id', 'payment_status'],
    )

    op.create_table(
        'attendance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('scheduled_class_id', sa.Integer(), sa.ForeignKey('scheduled_classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('attendance_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('check_in_time', sa.Time(), nullable=True),
        sa.Column('check_out_time', sa.Time(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            'organization_id',
            'scheduled_class_id',
            'member_id',
            'attendance_date',
            name='uq_attendance_org_class_member_date',
        ),
    )
    op.create_index('ix_attendance_org_member_date', 'attendance', ['organization_id', 'member_id', 'attendance_date'])

    op.create_table(
        'evaluations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('enrollment_id', sa.Integer(), sa.ForeignKey('enrollments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id', ondelete='CASCADE'), nullable=False),
        sa.Column('scheduled_class_id', sa.Integer(), sa.ForeignKey('scheduled_classes.id', ondelete='CASCADE'), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('evaluation_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_evaluations_org_member', 'evaluations', ['organization_id', 'member_id'])

    op.create_table(
        'organization_funds',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('organization_id', 'name', name='uq_organization_funds_org_name'),
    )

    op.create_table(
        'donations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('members.id', ondelete='SET NULL'), nullable=True),
        sa.Column('household_id', sa.Integer(), nullable=True),
        sa.Column('fund_id', sa.Integer(), sa.ForeignKey('organization_funds.id'), nullable=False),
        sa.Column('enrollment_id', sa.Integer(), sa.ForeignKey('enrollments.id', ondelete='SET NULL'), nullable=True),
        _money('amount', nullable=False),
        sa.Column('payment_method', sa.String(length=40), nullable=False, server_default='cash'),
        sa.Column('donation_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_donations_org_date', 'donations', ['organization_id', 'donation_date'])

    op.create_table(
        'reconciliation_issues',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('kind', sa.String(length=60), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False, server_default=''),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'ix_reconciliation_issues_org_kind_created',
        'reconciliation_issues',
        ['organization_id', 'kind', 'created_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_reconciliation_issues_org_kind_created', table_name='reconciliation_issues')
    op.drop_table('reconciliation_issues')
    op.drop_index('ix_donations_org_date', table_name='donations')
    op.drop_table('donations')
    op.drop_table('organization_funds')
    op.drop_index('ix_evaluations_org_member', table_name='evaluations')
    op.drop_table('evaluations')
    op.drop_index('ix_attendance_org_member_date', table_name='attendance')
    op.drop_table('attendance')
    op.drop_index('ix_tuition_monthly_payments_org_status', table_name='tuition_monthly_payments')
    op.drop_table('tuition_monthly_payments')
    op.drop_index('ix_enrollments_status', table_name='enrollments')
    op.drop_index('ix_enrollments_org_class', table_name='enrollments')
    op.drop_index('ix_enrollments_org_member', table_name='enrollments')
    op.drop_table('enrollments')
    op.drop_index('ix_scheduled_classes_classroom_id', table_name='scheduled_classes')
    op.drop_table('scheduled_classes')
    op.drop_table('courses')
    op.drop_table('classrooms')
    op.drop_table('teachers')
    op.drop_index('ix_members_household_id', table_name='members')
    op.drop_index('ix_members_organization_id', table_name='members')
    op.drop_table('members')
    op.drop_index('ix_organizations_slug', table_name='organizations')
    op.drop_table('organizations')
