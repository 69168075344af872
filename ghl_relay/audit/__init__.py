"""Audit trail of relay outcomes."""
