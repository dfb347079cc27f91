"""
Create staff, schedule_template and class_instance tables

Revision ID: a1c4e7d2b9f0
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a1c4e7d2b9f0'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'staff',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(100), nullable=False),
        sa.Column(
            'role',
            sa.Enum('ADMIN', 'STAFF', 'TRAINER', 'VISITING_TRAINER', name='staffrole'),
            nullable=False
        ),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_staff_id', 'staff', ['id'])

    op.create_table(
        'schedule_template',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('class_type', sa.String(100), nullable=False),
        sa.Column('instructor_id', sa.Integer(), sa.ForeignKey('staff.id'), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('schedule_type', sa.Enum('SINGLE', 'RECURRING', name='scheduletype'), nullable=False),
        sa.Column('days_of_week', sa.JSON(), nullable=True),
        sa.Column('recurrence_end_date', sa.Date(), nullable=True),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('location', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.CheckConstraint('capacity > 0', name='check_template_capacity_positive'),
        sa.CheckConstraint(
            'duration_minutes >= 15 AND duration_minutes <= 240',
            name='check_template_duration_range'
        ),
    )
    op.create_index('ix_schedule_template_id', 'schedule_template', ['id'])
    op.create_index('ix_schedule_template_instructor_id', 'schedule_template', ['instructor_id'])

    op.create_table(
        'class_instance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('schedule_template_id', sa.Integer(), sa.ForeignKey('schedule_template.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('registered_participants', sa.JSON(), nullable=False),
        sa.Column('waitlist', sa.JSON(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('SCHEDULED', 'ONGOING', 'COMPLETED', 'CANCELLED', name='classinstancestatus'),
            nullable=False
        ),
        sa.Column('price_share', sa.Numeric(10, 2), nullable=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('class_type', sa.String(100), nullable=False),
        sa.Column('instructor_id', sa.Integer(), nullable=False),
        sa.Column('instructor_name', sa.String(100), nullable=False),
        sa.Column('location', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.String(255), nullable=True),
        sa.Column('actual_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            'schedule_template_id', 'date', 'start_time',
            name='uq_class_instance_template_slot'
        ),
        sa.CheckConstraint('capacity > 0', name='check_instance_capacity_positive'),
    )
    op.create_index('ix_class_instance_id', 'class_instance', ['id'])
    op.create_index('ix_class_instance_schedule_template_id', 'class_instance', ['schedule_template_id'])
    op.create_index('ix_class_instance_date', 'class_instance', ['date'])


def downgrade():
    op.drop_index('ix_class_instance_date', table_name='class_instance')
    op.drop_index('ix_class_instance_schedule_template_id', table_name='class_instance')
    op.drop_index('ix_class_instance_id', table_name='class_instance')
    op.drop_table('class_instance')

    op.drop_index('ix_schedule_template_instructor_id', table_name='schedule_template')
    op.drop_index('ix_schedule_template_id', table_name='schedule_template')
    op.drop_table('schedule_template')

    op.drop_index('ix_staff_id', table_name='staff')
    op.drop_table('staff')

    sa.Enum(name='classinstancestatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='scheduletype').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='staffrole').drop(op.get_bind(), checkfirst=True)
