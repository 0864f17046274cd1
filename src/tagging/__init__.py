"""Batch submission, reconciliation and scheduling of tag analysis."""
