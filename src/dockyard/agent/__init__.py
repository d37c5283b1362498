"""Reconciliation agent: configuration, state engine and main loop."""
