"""Core module - cross-cutting infrastructure for the billing ledger.

Holds observability (correlated structured logging). Domain logic lives in
reconciliation/, controllers/ and printing/; persistence in ledger_store/.
"""

__version__ = "1.0.0"
