"""Tenant isolation: per-request context, row filter, write stamping."""
