"""create school records

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


teacher_status = sa.Enum("active", "inactive", "left_school", name="teacher_status")


def upgrade() -> None:
    op.create_table(
        "schools",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "timetable_structures",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("periods_per_day", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("working_days", sa.JSON(), nullable=False),
        sa.Column("time_slots", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_timetable_structures_school_id", "timetable_structures", ["school_id"], unique=True)

    op.create_table(
        "classes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("grade", sa.String(length=20), nullable=False),
        sa.Column("section", sa.String(length=20), nullable=False),
        sa.Column("room", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_classes_school_id", "classes", ["school_id"], unique=False)

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("periods_per_week", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_subjects_school_id", "subjects", ["school_id"], unique=False)

    op.create_table(
        "class_subject_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("weekly_frequency", sa.Integer(), nullable=True),
        sa.Column("assigned_teacher_id", sa.String(length=36), nullable=True),
        sa.UniqueConstraint("class_id", "subject_id", name="uq_class_subject"),
    )
    op.create_index("ix_class_subject_assignments_class_id", "class_subject_assignments", ["class_id"], unique=False)

    op.create_table(
        "teachers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("subjects", sa.JSON(), nullable=False),
        sa.Column("availability", sa.JSON(), nullable=False),
        sa.Column("max_load", sa.Integer(), nullable=True),
        sa.Column("max_daily_periods", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("status", teacher_status, nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teachers_school_id", "teachers", ["school_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_teachers_school_id", table_name="teachers")
    op.drop_table("teachers")
    op.drop_index("ix_class_subject_assignments_class_id", table_name="class_subject_assignments")
    op.drop_table("class_subject_assignments")
    op.drop_index("ix_subjects_school_id", table_name="subjects")
    op.drop_table("subjects")
    op.drop_index("ix_classes_school_id", table_name="classes")
    op.drop_table("classes")
    op.drop_index("ix_timetable_structures_school_id", table_name="timetable_structures")
    op.drop_table("timetable_structures")
    op.drop_table("schools")
    teacher_status.drop(op.get_bind(), checkfirst=True)
