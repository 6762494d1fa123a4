"""Create certificate generation tables

Revision ID: 3a7d2c9e1f04
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "3a7d2c9e1f04"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # users, courses, certificate_claims and the unit tables belong to the
    # course side of the application and already exist.

    op.create_table(
        "certificate_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("template_type", sa.String(20), nullable=False),
        sa.Column("course_type", sa.String(20), nullable=False),
        sa.Column("template_name", sa.String(200), nullable=False),
        sa.Column("template_path", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    # At most one active template per (type, course type)
    op.create_index(
        "uq_certificate_templates_active",
        "certificate_templates",
        ["template_type", "course_type"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active"),
    )

    op.create_table(
        "generated_certificates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("claim_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=True),
        sa.Column("course_id", sa.Integer(), nullable=True),
        sa.Column("course_category", sa.String(20), nullable=True),
        sa.Column("certificate_docx_path", sa.Text(), nullable=True),
        sa.Column("transcript_docx_path", sa.Text(), nullable=True),
        sa.Column("certificate_pdf_url", sa.Text(), nullable=True),
        sa.Column("transcript_pdf_url", sa.Text(), nullable=True),
        sa.Column("registration_number", sa.String(50), nullable=True),
        sa.Column("registration_added_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("registration_added_by", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("field_snapshot", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["claim_id"], ["certificate_claims.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("claim_id"),
    )
    op.create_index(
        op.f("ix_generated_certificates_student_id"), "generated_certificates", ["student_id"]
    )
    op.create_index(
        op.f("ix_generated_certificates_registration_number"), "generated_certificates", ["registration_number"]
    )

    op.create_table(
        "certificate_generation_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("generated_certificate_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("performed_by", sa.Integer(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["generated_certificate_id"], ["generated_certificates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_certificate_generation_log_generated_certificate_id"),
        "certificate_generation_log",
        ["generated_certificate_id"],
    )
    op.create_index(
        op.f("ix_certificate_generation_log_action"), "certificate_generation_log", ["action"]
    )

    op.create_table(
        "registration_counters",
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("name"),
    )


def downgrade():
    op.drop_table("registration_counters")
    op.drop_index(op.f("ix_certificate_generation_log_action"), table_name="certificate_generation_log")
    op.drop_index(
        op.f("ix_certificate_generation_log_generated_certificate_id"), table_name="certificate_generation_log"
    )
    op.drop_table("certificate_generation_log")
    op.drop_index(op.f("ix_generated_certificates_registration_number"), table_name="generated_certificates")
    op.drop_index(op.f("ix_generated_certificates_student_id"), table_name="generated_certificates")
    op.drop_table("generated_certificates")
    op.drop_index("uq_certificate_templates_active", table_name="certificate_templates")
    op.drop_table("certificate_templates")
