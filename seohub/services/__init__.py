"""Service layer: usage accounting, webhook reconciliation, notifications."""
