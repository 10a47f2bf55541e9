"""Backfill of identities that are missing a profile."""

from profile_engine.reconciler.backfill import Reconciler

__all__ = ["Reconciler"]
