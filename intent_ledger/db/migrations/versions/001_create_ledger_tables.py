"""Create ledger tables

Revision ID: 001_create_ledger_tables
Revises:
Create Date: 2026-10-18

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_create_ledger_tables"
down_revision = None
branch_labels = None
depends_on = None

intent_state = sa.Enum("research", "planning", "execution", "archived", name="intent_state")
visibility_scope = sa.Enum("private", "team", "organization", name="visibility_scope")
decision_status = sa.Enum("active", "superseded", name="decision_status")
assumption_status = sa.Enum("active", "invalidated", name="assumption_status")
record_origin = sa.Enum("human", "ai", name="record_origin")
risk_severity = sa.Enum("low", "medium", "high", "critical", name="risk_severity")
risk_likelihood = sa.Enum("low", "medium", "high", name="risk_likelihood")
risk_status = sa.Enum("active", "mitigated", "accepted", name="risk_status")
task_status = sa.Enum(
    "pending", "in_progress", "completed", "blocked", "cancelled", name="task_status"
)
node_type = sa.Enum("intent", "decision", "task", "assumption", "risk", name="node_type")
edge_type = sa.Enum(
    "led_to",
    "depends_on",
    "invalidates",
    "supports",
    "blocks",
    "derived_from",
    "mitigates",
    "assumes",
    name="edge_type",
)
proposal_type = sa.Enum("decision", "assumption", "risk", "question", name="proposal_type")
proposal_status = sa.Enum("pending", "accepted", "rejected", "parked", name="proposal_status")
audit_actor_kind = sa.Enum("human", "ai", "system", name="audit_actor_kind")
audit_action = sa.Enum("created", "updated", "status_changed", "deleted", name="audit_action")


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    # Create intents table
    op.create_table(
        "intents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tenant_id", sa.String(128), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("current_state", intent_state, nullable=False),
        sa.Column("created_by", sa.String(128), nullable=False),
        _created_at(),
        sa.Column("last_human_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confidence_level", sa.Float, nullable=True),
        sa.Column("visibility_scope", visibility_scope, nullable=False),
    )
    op.create_index("ix_intents_tenant_id", "intents", ["tenant_id"])
    op.create_index("ix_intents_current_state", "intents", ["current_state"])
    op.create_index("ix_intents_tenant_state", "intents", ["tenant_id", "current_state"])

    # Create decisions table
    op.create_table(
        "decisions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("intent_id", sa.String(36), nullable=False),
        sa.Column("decision_statement", sa.Text, nullable=False),
        sa.Column("options_considered", sa.JSON, nullable=False),
        sa.Column("final_choice", sa.Text, nullable=False),
        sa.Column("human_approver", sa.String(128), nullable=False),
        sa.Column("ai_inputs_referenced", sa.JSON, nullable=False),
        sa.Column("decision_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revisit_condition", sa.Text, nullable=True),
        sa.Column("status", decision_status, nullable=False),
    )
    op.create_index("ix_decisions_intent_id", "decisions", ["intent_id"])
    op.create_index("ix_decisions_decision_timestamp", "decisions", ["decision_timestamp"])
    op.create_index("ix_decisions_status", "decisions", ["status"])
    op.create_index("ix_decisions_intent_status", "decisions", ["intent_id", "status"])
    op.create_index("ix_decisions_intent_ts", "decisions", ["intent_id", "decision_timestamp"])

    # Create assumptions table
    op.create_table(
        "assumptions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("intent_id", sa.String(36), nullable=False),
        sa.Column("assumption_statement", sa.Text, nullable=False),
        sa.Column("confidence_level", sa.Float, nullable=True),
        sa.Column("created_from", record_origin, nullable=False),
        _created_at(),
        sa.Column("expiry_hint", sa.String(64), nullable=True),
        sa.Column("status", assumption_status, nullable=False),
    )
    op.create_index("ix_assumptions_intent_id", "assumptions", ["intent_id"])
    op.create_index("ix_assumptions_status", "assumptions", ["status"])

    # Create risks table
    op.create_table(
        "risks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("intent_id", sa.String(36), nullable=False),
        sa.Column("risk_statement", sa.Text, nullable=False),
        sa.Column("severity", risk_severity, nullable=True),
        sa.Column("likelihood", risk_likelihood, nullable=True),
        sa.Column("created_from", record_origin, nullable=False),
        sa.Column("mitigation_notes", sa.Text, nullable=True),
        sa.Column("status", risk_status, nullable=False),
        _created_at(),
    )
    op.create_index("ix_risks_intent_id", "risks", ["intent_id"])
    op.create_index("ix_risks_status", "risks", ["status"])

    # Create tasks table
    op.create_table(
        "tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("intent_id", sa.String(36), nullable=False),
        sa.Column("decision_id", sa.String(36), nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("owner", sa.String(128), nullable=True),
        sa.Column("status", task_status, nullable=False),
        sa.Column("sla", sa.String(64), nullable=True),
        sa.Column("external_system_ref", sa.String(256), nullable=True),
        _created_at(),
    )
    op.create_index("ix_tasks_intent_id", "tasks", ["intent_id"])
    op.create_index("ix_tasks_decision_id", "tasks", ["decision_id"])
    op.create_index("ix_tasks_status", "tasks", ["status"])

    # Create edges table
    op.create_table(
        "edges",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("source_id", sa.String(36), nullable=False),
        sa.Column("source_type", node_type, nullable=False),
        sa.Column("target_id", sa.String(36), nullable=False),
        sa.Column("target_type", node_type, nullable=False),
        sa.Column("edge_type", edge_type, nullable=False),
        sa.Column("created_by", sa.String(128), nullable=False),
        _created_at(),
    )
    op.create_index("ix_edges_source_id", "edges", ["source_id"])
    op.create_index("ix_edges_target_id", "edges", ["target_id"])
    op.create_index("ix_edges_edge_type", "edges", ["edge_type"])

    # Create ai_proposals table
    op.create_table(
        "ai_proposals",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("intent_id", sa.String(36), nullable=True),
        sa.Column("proposal_type", proposal_type, nullable=False),
        sa.Column("content", sa.JSON, nullable=False),
        sa.Column("prompt_template_id", sa.String(128), nullable=True),
        sa.Column("model_used", sa.String(128), nullable=True),
        sa.Column("confidence", sa.Float, nullable=True),
        sa.Column("status", proposal_status, nullable=False),
        sa.Column("reviewed_by", sa.String(128), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_ai_proposals_intent_id", "ai_proposals", ["intent_id"])
    op.create_index("ix_ai_proposals_status", "ai_proposals", ["status"])
    op.create_index("ix_ai_proposals_intent_status", "ai_proposals", ["intent_id", "status"])

    # Create audit_log table
    op.create_table(
        "audit_log",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "ts",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("actor_kind", audit_actor_kind, nullable=False),
        sa.Column("actor_id", sa.String(128), nullable=False),
        sa.Column("action", audit_action, nullable=False),
        sa.Column("entity_kind", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(128), nullable=False),
        sa.Column("before", sa.JSON, nullable=True),
        sa.Column("after", sa.JSON, nullable=True),
        sa.Column("note", sa.Text, nullable=True),
    )
    op.create_index("ix_audit_log_ts", "audit_log", ["ts"])
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_entity_kind", "audit_log", ["entity_kind"])
    op.create_index("ix_audit_log_entity_id", "audit_log", ["entity_id"])
    op.create_index("ix_audit_log_entity", "audit_log", ["entity_kind", "entity_id"])
    op.create_index("ix_audit_log_actor", "audit_log", ["actor_kind", "actor_id"])
    op.create_index(
        "ix_audit_log_entity_ts", "audit_log", ["entity_kind", "entity_id", "ts"]
    )


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table("audit_log")
    op.drop_table("ai_proposals")
    op.drop_table("edges")
    op.drop_table("tasks")
    op.drop_table("risks")
    op.drop_table("assumptions")
    op.drop_table("decisions")
    op.drop_table("intents")

    # Drop custom enums (PostgreSQL only)
    if op.get_bind().dialect.name == "postgresql":
        for name in (
            "audit_action",
            "audit_actor_kind",
            "proposal_status",
            "proposal_type",
            "edge_type",
            "node_type",
            "task_status",
            "risk_status",
            "risk_likelihood",
            "risk_severity",
            "record_origin",
            "assumption_status",
            "decision_status",
            "visibility_scope",
            "intent_state",
        ):
            op.execute(f"DROP TYPE IF EXISTS {name}")
