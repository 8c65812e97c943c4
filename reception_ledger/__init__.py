"""
Reception Ledger - Source Package

Hierarchical aggregation and edit-overlay engine for financial line items:
units -> work groups -> base items -> income / expense buckets, with roll-up
totals at every level and pending edits layered over the canonical list.

DESIGN PRINCIPLES:
1. Canonical data is never modified in place
2. Fail early, fail visibly
3. No silent corrections
4. Every write must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Reception Ledger Team"
