"""
Orchestrator tables.

Defines table names and DDL statements for policies, agents, the
agent/policy assignment links, the per-(policy, task type) schedule
cursor, and tasks.

Manifesto:
    - **Policies:** Declarative backup intent with up to three schedules
    - **Agents:** Fleet members plus their derived backoff aggregate
    - **Links:** Many-to-many assignment of policies to agents
    - **States:** One schedule cursor per (policy, task type)
    - **Tasks:** Concrete work items with retry bookkeeping

Architecture:
    ::

        Table Registry (FLEET_TABLES):
        ┌────────────────────────────────────────────────────────────┐
        │ policies            → policies                             │
        │ agents              → agents                               │
        │ agent_policy_links  → agent_policy_links                   │
        │ policy_task_states  → policy_task_states                   │
        │ tasks               → tasks                                │
        └────────────────────────────────────────────────────────────┘

        Time columns are TEXT holding fixed-width ISO-8601 UTC strings
        (see fleet.core.timestamps), so ``<``/``ORDER BY`` on them is
        chronological.  Path lists and retention rules are JSON text.

Examples:
    >>> from fleet.core.schema import initialize_schema
    >>> initialize_schema(conn)

Guardrails:
    ❌ DON'T: Store timestamps with varying precision or offsets
    ✅ DO: Write them through fleet.core.timestamps.to_iso8601()

Tags:
    schema, ddl, tables, fleet-core, database

Doc-Types:
    - API Reference
    - Schema Documentation
"""

from fleet.core.protocols import Connection

# =============================================================================
# TABLE NAMES
# =============================================================================

FLEET_TABLES = {
    "policies": "policies",
    "agents": "agents",
    "agent_policy_links": "agent_policy_links",
    "policy_task_states": "policy_task_states",
    "tasks": "tasks",
}

# =============================================================================
# DDL
# =============================================================================

FLEET_DDL = {
    "policies": """
        CREATE TABLE IF NOT EXISTS policies (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            enabled INTEGER NOT NULL DEFAULT 1,
            schedule TEXT NOT NULL,
            check_schedule TEXT,
            prune_schedule TEXT,
            repository_url TEXT NOT NULL DEFAULT '',
            include_paths TEXT NOT NULL DEFAULT '[]',
            exclude_paths TEXT NOT NULL DEFAULT '[]',
            retention TEXT NOT NULL DEFAULT '{}',
            max_retries INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "agents": """
        CREATE TABLE IF NOT EXISTS agents (
            id TEXT PRIMARY KEY,
            hostname TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            last_seen_at TEXT,
            max_concurrent_tasks INTEGER NOT NULL DEFAULT 1,
            tasks_in_backoff INTEGER NOT NULL DEFAULT 0,
            earliest_retry_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "agent_policy_links": """
        CREATE TABLE IF NOT EXISTS agent_policy_links (
            agent_id TEXT NOT NULL REFERENCES agents(id) ON DELETE CASCADE,
            policy_id TEXT NOT NULL REFERENCES policies(id) ON DELETE CASCADE,
            created_at TEXT NOT NULL,
            PRIMARY KEY (agent_id, policy_id)
        )
    """,
    "policy_task_states": """
        CREATE TABLE IF NOT EXISTS policy_task_states (
            policy_id TEXT NOT NULL REFERENCES policies(id) ON DELETE CASCADE,
            task_type TEXT NOT NULL,
            last_run TEXT,
            next_run TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (policy_id, task_type)
        )
    """,
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            agent_id TEXT NOT NULL REFERENCES agents(id) ON DELETE CASCADE,
            policy_id TEXT REFERENCES policies(id) ON DELETE SET NULL,
            task_type TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending',
            repository TEXT NOT NULL DEFAULT '',
            include_paths TEXT NOT NULL DEFAULT '[]',
            exclude_paths TEXT NOT NULL DEFAULT '[]',
            retention TEXT NOT NULL DEFAULT '{}',
            scheduled_for TEXT NOT NULL,
            assigned_at TEXT,
            acknowledged_at TEXT,
            started_at TEXT,
            completed_at TEXT,
            error_message TEXT,
            duration_seconds REAL,
            snapshot_id TEXT,
            retry_count INTEGER NOT NULL DEFAULT 0,
            max_retries INTEGER NOT NULL DEFAULT 3,
            next_retry_at TEXT,
            last_error_category TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "tasks_idx_claim": """
        CREATE INDEX IF NOT EXISTS idx_tasks_agent_status
        ON tasks(agent_id, status, scheduled_for, created_at)
    """,
    "tasks_idx_retry": """
        CREATE INDEX IF NOT EXISTS idx_tasks_next_retry
        ON tasks(agent_id, next_retry_at)
    """,
    "links_idx_policy": """
        CREATE INDEX IF NOT EXISTS idx_links_policy
        ON agent_policy_links(policy_id)
    """,
}


def initialize_schema(conn: Connection) -> None:
    """
    Create all orchestrator tables and indexes.

    Safe to call multiple times (CREATE IF NOT EXISTS).
    """
    for _name, ddl in FLEET_DDL.items():
        conn.execute(ddl)
    conn.commit()


__all__ = ["FLEET_DDL", "FLEET_TABLES", "initialize_schema"]
