"""Entity store and brain tables.

Revision ID: 001_brain_tables
Revises:
Create Date: 2026-10-19

Creates tables for:
- entities: Mirror of the hub's entity states
- entity_capabilities: Capability flags per entity (external registry)
- entity_normalization: Canonical classification per entity
- intent_candidates: Generated actionable phrasings
- brain_runs: One audit row per sweep
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_brain_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # Entities table
    op.create_table(
        "entities",
        sa.Column("entity_id", sa.String(255), primary_key=True),
        sa.Column("source_id", sa.String(64), nullable=False, server_default="default"),
        sa.Column("domain", sa.String(50), nullable=False),
        sa.Column("object_id", sa.String(255), nullable=False),
        sa.Column("friendly_name", sa.String(255), nullable=True),
        sa.Column("icon", sa.String(100), nullable=True),
        sa.Column("unit_of_measure", sa.String(50), nullable=True),
        sa.Column("area", sa.String(255), nullable=True),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata_json", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("entity_id", name="pk_entities"),
    )
    op.create_index("ix_entities_domain", "entities", ["domain"])
    op.create_index("ix_entities_source_domain", "entities", ["source_id", "domain"])

    # Capability flags (populated by the registry, read by the sweep)
    op.create_table(
        "entity_capabilities",
        sa.Column("entity_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("value_text", sa.Text(), nullable=True),
        sa.Column("value_num", sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(
            ["entity_id"],
            ["entities.entity_id"],
            name="fk_entity_capabilities_entity_id_entities",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("entity_id", "name", name="pk_entity_capabilities"),
    )

    # Normalization (one row per entity)
    op.create_table(
        "entity_normalization",
        sa.Column("entity_id", sa.String(255), nullable=False),
        sa.Column("canonical_type", sa.String(50), nullable=False),
        sa.Column("canonical_domain", sa.String(50), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["entity_id"],
            ["entities.entity_id"],
            name="fk_entity_normalization_entity_id_entities",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("entity_id", name="pk_entity_normalization"),
    )

    # Intent candidates
    op.create_table(
        "intent_candidates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_id", sa.String(255), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("intent_kind", sa.String(20), nullable=False),
        sa.Column("action_domain", sa.String(50), nullable=False),
        sa.Column("action_service", sa.String(100), nullable=False),
        sa.Column("action_data_json", JSONType, nullable=False),
        sa.Column("requires_caps", JSONType, nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0.75"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "intent_kind IN ('control', 'schedule', 'query', 'diagnostic')",
            name="ck_intent_candidates_intent_kind",
        ),
        sa.ForeignKeyConstraint(
            ["entity_id"],
            ["entities.entity_id"],
            name="fk_intent_candidates_entity_id_entities",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_intent_candidates"),
    )
    op.create_index(
        "ix_intent_candidates_entity_enabled",
        "intent_candidates",
        ["entity_id", "enabled"],
    )

    # Sweep audit
    op.create_table(
        "brain_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("ran_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scanned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("normalized", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("intents_created", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id", name="pk_brain_runs"),
    )
    op.create_index("ix_brain_runs_ran_at_utc", "brain_runs", ["ran_at_utc"])


def downgrade() -> None:
    op.drop_index("ix_brain_runs_ran_at_utc", table_name="brain_runs")
    op.drop_table("brain_runs")
    op.drop_index("ix_intent_candidates_entity_enabled", table_name="intent_candidates")
    op.drop_table("intent_candidates")
    op.drop_table("entity_normalization")
    op.drop_table("entity_capabilities")
    op.drop_index("ix_entities_source_domain", table_name="entities")
    op.drop_index("ix_entities_domain", table_name="entities")
    op.drop_table("entities")
