"""Recurrence expansion, materialization and lifecycle services."""
