"""portal schema: clients, users, quotes, work orders, alerts

Revision ID: 0001_portal_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000

Tables may already exist when the database was created by
Base.metadata.create_all(); each table is created only if missing.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '0001_portal_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name):
    bind = op.get_bind()
    return table_name in inspect(bind).get_table_names()


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    if not _table_exists("clients"):
        op.create_table(
            "clients",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("code", sa.String(50), nullable=False, unique=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="active"),
            sa.Column("protected", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("primary_contact_name", sa.String(255), nullable=True),
            sa.Column("primary_contact_email", sa.String(255), nullable=True),
            sa.Column("primary_contact_phone", sa.String(50), nullable=True),
            sa.Column("settings", sa.JSON(), nullable=True),
            *_timestamps(),
        )

    if not _table_exists("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(255), nullable=False, index=True),
            sa.Column("password_hash", sa.String(), nullable=False),
            sa.Column("role", sa.String(20), nullable=False, server_default="client"),
            sa.Column("full_name", sa.String(255), nullable=False),
            sa.Column("phone_number", sa.String(50), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False),
            *_timestamps(),
            sa.UniqueConstraint("client_id", "email", name="uq_users_client_email"),
        )

    if not _table_exists("quotes"):
        op.create_table(
            "quotes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("quote_number", sa.String(20), nullable=True, unique=True),
            sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False, index=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="Draft", index=True),
            sa.Column("property_name", sa.String(255), nullable=True),
            sa.Column("property_address", sa.Text(), nullable=True),
            sa.Column("property_phone", sa.String(50), nullable=True),
            sa.Column("title", sa.String(255), nullable=True),
            sa.Column("work_type", sa.String(100), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("scope_of_work", sa.Text(), nullable=True),
            sa.Column("contact_person", sa.String(255), nullable=True),
            sa.Column("contact_email", sa.String(255), nullable=True),
            sa.Column("contact_phone", sa.String(50), nullable=True),
            sa.Column("is_urgent", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("required_by_date", sa.Date(), nullable=True),
            sa.Column("special_instructions", sa.Text(), nullable=True),
            sa.Column("estimated_cost", sa.Numeric(10, 2), nullable=True),
            sa.Column("estimated_hours", sa.Numeric(8, 2), nullable=True),
            sa.Column("quote_notes", sa.Text(), nullable=True),
            sa.Column("quote_valid_until", sa.DateTime(), nullable=True),
            sa.Column("itemized_breakdown", sa.JSON(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(), nullable=True),
            sa.Column("quoted_at", sa.DateTime(), nullable=True),
            sa.Column("approved_at", sa.DateTime(), nullable=True),
            sa.Column("declined_at", sa.DateTime(), nullable=True),
            sa.Column("expired_at", sa.DateTime(), nullable=True),
            sa.Column("converted_at", sa.DateTime(), nullable=True),
            sa.Column("converted_to_work_order_id", sa.Integer(), nullable=True),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            *_timestamps(),
        )

    if not _table_exists("quote_messages"):
        op.create_table(
            "quote_messages",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("quote_id", sa.Integer(), sa.ForeignKey("quotes.id"), nullable=False, index=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("message_type", sa.String(32), nullable=False, server_default="comment"),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("previous_cost", sa.Numeric(10, 2), nullable=True),
            sa.Column("new_cost", sa.Numeric(10, 2), nullable=True),
            sa.Column("previous_hours", sa.Numeric(8, 2), nullable=True),
            sa.Column("new_hours", sa.Numeric(8, 2), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if not _table_exists("quote_attachments"):
        op.create_table(
            "quote_attachments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("quote_id", sa.Integer(), sa.ForeignKey("quotes.id"), nullable=False, index=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("file_type", sa.String(20), nullable=False, server_default="photo"),
            sa.Column("file_name", sa.String(255), nullable=False),
            sa.Column("file_url", sa.Text(), nullable=False),
            sa.Column("file_size", sa.Integer(), nullable=True),
            sa.Column("mime_type", sa.String(100), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(), nullable=True),
        )

    if not _table_exists("work_orders"):
        op.create_table(
            "work_orders",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("job_no", sa.String(50), nullable=False, unique=True),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
            sa.Column("work_order_type", sa.String(50), nullable=True),
            sa.Column("supplier_name", sa.String(255), nullable=False),
            sa.Column("supplier_phone", sa.String(50), nullable=True),
            sa.Column("supplier_email", sa.String(255), nullable=True),
            sa.Column("property_name", sa.String(255), nullable=False),
            sa.Column("property_address", sa.Text(), nullable=True),
            sa.Column("property_phone", sa.String(50), nullable=True),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("po_number", sa.String(100), nullable=True),
            sa.Column("authorized_by", sa.String(255), nullable=True),
            sa.Column("authorized_contact", sa.String(100), nullable=True),
            sa.Column("authorized_email", sa.String(255), nullable=True),
            sa.Column("is_urgent", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_from_quote_id", sa.Integer(), sa.ForeignKey("quotes.id"), nullable=True),
            sa.Column("quote_number", sa.String(20), nullable=True),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False, index=True),
            *_timestamps(),
        )

    if not _table_exists("work_order_notes"):
        op.create_table(
            "work_order_notes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("work_order_id", sa.Integer(), sa.ForeignKey("work_orders.id"), nullable=False, index=True),
            sa.Column("note", sa.Text(), nullable=False),
            sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if not _table_exists("photos"):
        op.create_table(
            "photos",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("work_order_id", sa.Integer(), sa.ForeignKey("work_orders.id"), nullable=False, index=True),
            sa.Column("file_path", sa.Text(), nullable=False),
            sa.Column("file_name", sa.String(255), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("uploaded_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if not _table_exists("status_updates"):
        op.create_table(
            "status_updates",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("work_order_id", sa.Integer(), sa.ForeignKey("work_orders.id"), nullable=False, index=True),
            sa.Column("previous_status", sa.String(20), nullable=False),
            sa.Column("new_status", sa.String(20), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("updated_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )

    if not _table_exists("alerts"):
        op.create_table(
            "alerts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
            sa.Column("work_order_id", sa.Integer(), sa.ForeignKey("work_orders.id"), nullable=True),
            sa.Column("quote_id", sa.Integer(), sa.ForeignKey("quotes.id"), nullable=True),
            sa.Column("type", sa.String(20), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )


def downgrade() -> None:
    for table in (
        "alerts", "status_updates", "photos", "work_order_notes", "work_orders",
        "quote_attachments", "quote_messages", "quotes", "users", "clients",
    ):
        if _table_exists(table):
            op.drop_table(table)
