from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

UUID_EXTENSION = "uuid-ossp"

metadata = sa.MetaData()

users = sa.Table(
    "users",
    metadata,
    sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("uuid_generate_v4()")),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("email", sa.Text(), nullable=False, unique=True),
    sa.Column("password", sa.Text(), nullable=False),
)

customers = sa.Table(
    "customers",
    metadata,
    sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("uuid_generate_v4()")),
    sa.Column("name", sa.String(255), nullable=False),
    sa.Column("email", sa.String(255), nullable=False),
    sa.Column("image_url", sa.String(255), nullable=False),
)

# customer_id is an unchecked reference (no FOREIGN KEY).
invoices = sa.Table(
    "invoices",
    metadata,
    sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("uuid_generate_v4()")),
    sa.Column("customer_id", UUID(as_uuid=True), nullable=False),
    sa.Column("amount", sa.Integer(), nullable=False),
    sa.Column("status", sa.String(255), nullable=False),
    sa.Column("date", sa.Date(), nullable=False),
)

revenue = sa.Table(
    "revenue",
    metadata,
    sa.Column("month", sa.String(4), nullable=False, unique=True),
    sa.Column("revenue", sa.Integer(), nullable=False),
)
