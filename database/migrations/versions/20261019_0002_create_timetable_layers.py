"""create global and weekly timetable layers

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


weekly_modification = sa.Enum("reassigned", "cancelled", "inserted", name="weekly_modification")
substitution_status = sa.Enum("pending", "confirmed", "rejected", name="substitution_status")
replacement_status = sa.Enum("completed", "failed", name="teacher_replacement_status")


def upgrade() -> None:
    op.create_table(
        "timetable_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("day", sa.String(length=10), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("room", sa.String(length=100), nullable=True),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("class_id", "day", "period", name="uq_timetable_entry_slot"),
    )
    op.create_index("ix_timetable_entries_class_id", "timetable_entries", ["class_id"], unique=False)
    op.create_index("ix_timetable_entries_teacher_id", "timetable_entries", ["teacher_id"], unique=False)

    op.create_table(
        "weekly_timetables",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("week_end", sa.Date(), nullable=False),
        sa.Column("modified_by", sa.String(length=36), nullable=True),
        sa.Column("based_on_global_version", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("class_id", "week_start", name="uq_weekly_timetable_week"),
    )
    op.create_index("ix_weekly_timetables_school_id", "weekly_timetables", ["school_id"], unique=False)
    op.create_index("ix_weekly_timetables_class_id", "weekly_timetables", ["class_id"], unique=False)

    op.create_table(
        "weekly_timetable_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("weekly_timetable_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("day", sa.String(length=10), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("room", sa.String(length=100), nullable=True),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("global_entry_id", sa.String(length=36), nullable=True),
        sa.Column("modification", weekly_modification, nullable=True),
        sa.Column("modification_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("weekly_timetable_id", "day", "period", name="uq_weekly_timetable_entry_slot"),
    )
    op.create_index(
        "ix_weekly_timetable_entries_weekly_timetable_id",
        "weekly_timetable_entries",
        ["weekly_timetable_id"],
        unique=False,
    )
    op.create_index("ix_weekly_timetable_entries_class_id", "weekly_timetable_entries", ["class_id"], unique=False)
    op.create_index("ix_weekly_timetable_entries_week_start", "weekly_timetable_entries", ["week_start"], unique=False)
    op.create_index("ix_weekly_timetable_entries_teacher_id", "weekly_timetable_entries", ["teacher_id"], unique=False)

    op.create_table(
        "substitutions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("timetable_entry_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("day", sa.String(length=10), nullable=False),
        sa.Column("period", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("original_teacher_id", sa.String(length=36), nullable=False),
        sa.Column("substitute_teacher_id", sa.String(length=36), nullable=True),
        sa.Column("substitution_date", sa.Date(), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", substitution_status, nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_substitutions_school_id", "substitutions", ["school_id"], unique=False)
    op.create_index("ix_substitutions_class_id", "substitutions", ["class_id"], unique=False)

    op.create_table(
        "teacher_replacements",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("original_teacher_id", sa.String(length=36), nullable=False),
        sa.Column("replacement_teacher_id", sa.String(length=36), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("affected_timetable_entries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("conflict_details", sa.JSON(), nullable=False),
        sa.Column("status", replacement_status, nullable=False),
        sa.Column("replaced_by", sa.String(length=36), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_teacher_replacements_school_id", "teacher_replacements", ["school_id"], unique=False)
    op.create_index(
        "ix_teacher_replacements_original_teacher_id",
        "teacher_replacements",
        ["original_teacher_id"],
        unique=False,
    )

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_index("ix_teacher_replacements_original_teacher_id", table_name="teacher_replacements")
    op.drop_index("ix_teacher_replacements_school_id", table_name="teacher_replacements")
    op.drop_table("teacher_replacements")
    op.drop_index("ix_substitutions_class_id", table_name="substitutions")
    op.drop_index("ix_substitutions_school_id", table_name="substitutions")
    op.drop_table("substitutions")
    op.drop_index("ix_weekly_timetable_entries_teacher_id", table_name="weekly_timetable_entries")
    op.drop_index("ix_weekly_timetable_entries_week_start", table_name="weekly_timetable_entries")
    op.drop_index("ix_weekly_timetable_entries_class_id", table_name="weekly_timetable_entries")
    op.drop_index("ix_weekly_timetable_entries_weekly_timetable_id", table_name="weekly_timetable_entries")
    op.drop_table("weekly_timetable_entries")
    op.drop_index("ix_weekly_timetables_class_id", table_name="weekly_timetables")
    op.drop_index("ix_weekly_timetables_school_id", table_name="weekly_timetables")
    op.drop_table("weekly_timetables")
    op.drop_index("ix_timetable_entries_teacher_id", table_name="timetable_entries")
    op.drop_index("ix_timetable_entries_class_id", table_name="timetable_entries")
    op.drop_table("timetable_entries")
    replacement_status.drop(op.get_bind(), checkfirst=True)
    substitution_status.drop(op.get_bind(), checkfirst=True)
    weekly_modification.drop(op.get_bind(), checkfirst=True)
