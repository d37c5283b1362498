"""Reconciliation core: normalization, fingerprints, planning, build translation."""
