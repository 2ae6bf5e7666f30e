"""
Database bootstrap for the dashboard schema.

Repo-level DB operations, shared by the seed service and the CLI:
- Scoped connection factory and typed error classification
- Preflight checks (connectivity, uuid-ossp, users table)
- Idempotent seeders for users, customers, invoices and revenue
- Retrying orchestrator (`python -m db.seed`)
"""
