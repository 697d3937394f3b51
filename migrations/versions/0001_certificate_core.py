"""certificate core tables

Revision ID: 0001_certificate_core
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_certificate_core"
down_revision = None
branch_labels = None
depends_on = None

_ACTIVE = sa.text("status = 'ISSUED'")
_PENDING = sa.text("status = 'PENDING'")

def upgrade():
    op.create_table(
        "certificate_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("superseded_by_id", sa.Integer(),
                  sa.ForeignKey("certificate_templates.id", name="fk_certificate_templates_superseded_by_id_certificate_templates"),
                  nullable=True),
        sa.Column("design", sa.JSON(), nullable=False),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "candidates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(80), nullable=False),
        sa.Column("last_name", sa.String(80), nullable=False, server_default=""),
        sa.Column("email", sa.String(160), nullable=False),
    )
    op.create_index("ix_candidates_email", "candidates", ["email"])
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("code", sa.String(40), nullable=True),
        sa.Column("default_template_id", sa.Integer(),
                  sa.ForeignKey("certificate_templates.id", name="fk_courses_default_template_id_certificate_templates"),
                  nullable=True),
    )
    op.create_table(
        "certificate_sequences",
        sa.Column("year", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "certificates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("certificate_number", sa.String(40), nullable=False),
        sa.Column("candidate_id", sa.Integer(), sa.ForeignKey("candidates.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("template_id", sa.Integer(), sa.ForeignKey("certificate_templates.id"), nullable=False),
        sa.Column("header_text", sa.Text(), nullable=False),
        sa.Column("body_text", sa.Text(), nullable=False),
        sa.Column("footer_text", sa.Text(), nullable=False),
        sa.Column("design_snapshot", sa.JSON(), nullable=False),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("status", sa.Enum("ISSUED", "REVOKED", "EXPIRED", name="certificatestatus"), nullable=False),
        sa.Column("grade", sa.String(40), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("digital_signature", sa.String(128), nullable=False),
        sa.Column("revocation_reason", sa.Text(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("supersedes_id", sa.Integer(),
                  sa.ForeignKey("certificates.id", name="fk_certificates_supersedes_id_certificates"), nullable=True),
        sa.Column("superseded_by_id", sa.Integer(),
                  sa.ForeignKey("certificates.id", name="fk_certificates_superseded_by_id_certificates"), nullable=True),
        sa.Column("issued_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_certificates_certificate_number", "certificates", ["certificate_number"], unique=True)
    op.create_index(
        "uq_certificates_active_pair", "certificates", ["candidate_id", "course_id"],
        unique=True, sqlite_where=_ACTIVE, postgresql_where=_ACTIVE,
    )
    op.create_table(
        "certificate_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("candidate_id", sa.Integer(), sa.ForeignKey("candidates.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("trainer_id", sa.Integer(), nullable=True),
        sa.Column("assessment_score", sa.Float(), nullable=True),
        sa.Column("status", sa.Enum("PENDING", "APPROVED", "REJECTED", name="approvalstatus"), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("certificate_id", sa.Integer(), sa.ForeignKey("certificates.id"), nullable=True),
    )
    op.create_index("ix_certificate_requests_requested_at", "certificate_requests", ["requested_at"])
    op.create_index(
        "uq_certificate_requests_pending_pair", "certificate_requests", ["candidate_id", "course_id"],
        unique=True, sqlite_where=_PENDING, postgresql_where=_PENDING,
    )
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("entity", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("diff_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_table(
        "idempotency_keys",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(80), nullable=False),
        sa.Column("signature", sa.String(80), nullable=False),
        sa.Column("response_body", sa.LargeBinary(), nullable=False),
        sa.Column("response_mime", sa.String(80), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("key", "signature", name="uq_idempotency_keys_key_signature"),
    )
    op.create_index("ix_idempotency_keys_key", "idempotency_keys", ["key"])

def downgrade():
    op.drop_table("idempotency_keys")
    op.drop_table("audit_logs")
    op.drop_table("certificate_requests")
    op.drop_table("certificates")
    op.drop_table("certificate_sequences")
    op.drop_table("courses")
    op.drop_table("candidates")
    op.drop_table("certificate_templates")
    sa.Enum(name="approvalstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="certificatestatus").drop(op.get_bind(), checkfirst=True)
