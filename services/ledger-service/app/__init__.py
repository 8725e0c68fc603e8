"""Multi-tenant ledger service."""
