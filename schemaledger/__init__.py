"""Schema migration orchestrator for SurrealDB.

Applies ordered migration units, records them in a ledger table, and
reverts them on request.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
