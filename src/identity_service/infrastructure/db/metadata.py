"""SQLAlchemy metadata definitions for identity tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()
sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

accounts = sa.Table(
    "accounts",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
    sa.Column("email", sa.String(254), nullable=False),
    sa.Column("first_name", sa.String(100), nullable=False),
    sa.Column("last_name", sa.String(100), nullable=False),
    sa.Column("phone_number", sa.String(16), nullable=True),
    sa.Column("password_hash", sa.Text(), nullable=False),
    sa.Column("password_salt", sa.Text(), nullable=False),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column("lockout_end", sa.DateTime(timezone=True), nullable=True),
    sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    ),
    sa.UniqueConstraint("email", name="uq_accounts_email"),
)

roles = sa.Table(
    "roles",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("name", sa.String(100), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.UniqueConstraint("name", name="uq_roles_name"),
)

account_roles = sa.Table(
    "account_roles",
    metadata,
    sa.Column(
        "account_id",
        sa.Uuid(),
        sa.ForeignKey("accounts.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
    ),
    sa.Column(
        "role_id",
        sqlite_bigint,
        sa.ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
    ),
)
sa.Index("ix_account_roles_role_id", account_roles.c.role_id)

refresh_tokens = sa.Table(
    "refresh_tokens",
    metadata,
    sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
    sa.Column("account_id", sa.Uuid(), sa.ForeignKey("accounts.id"), nullable=False),
    sa.Column("token_digest", sa.String(64), nullable=False),
    sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("replaced_by_digest", sa.String(64), nullable=True),
    sa.UniqueConstraint("token_digest", name="uq_refresh_tokens_token_digest"),
)
sa.Index("ix_refresh_tokens_account_id", refresh_tokens.c.account_id)
sa.Index("ix_refresh_tokens_expires_at", refresh_tokens.c.expires_at)

audit_entries = sa.Table(
    "audit_entries",
    metadata,
    sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
    sa.Column("action", sa.String(64), nullable=False),
    sa.Column("subject_type", sa.String(64), nullable=False),
    sa.Column("subject_id", sa.Uuid(), nullable=False),
    sa.Column("actor_account_id", sa.Uuid(), nullable=True),
    sa.Column("detail", sa.Text(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)
sa.Index(
    "ix_audit_entries_subject_id_created_at",
    audit_entries.c.subject_id,
    audit_entries.c.created_at,
)
sa.Index("ix_audit_entries_action", audit_entries.c.action)
