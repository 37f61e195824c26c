"""Entry point for running migrations as a module.

Usage:
    python -m schemaledger.db.migrations migrate
    python -m schemaledger.db.migrations revert --times 2
    python -m schemaledger.db.migrations list --status pending
"""

from .cli import main

if __name__ == "__main__":
    main()
