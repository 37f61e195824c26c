"""Lifecycle event reporting for migration runs.

MigrationReporter is the event sink the runner notifies; it ignores
every event. ConsoleReporter logs the lifecycle and prints the
affected migration names to the terminal.
"""

import logging
from typing import Optional

from rich.console import Console

logger = logging.getLogger(__name__)


class MigrationReporter:
    """Receives named lifecycle events from the runner. Does nothing."""

    def looking_for_pending(self) -> None:
        pass

    def no_pending(self) -> None:
        pass

    def applying_pending(self, count: int) -> None:
        pass

    def applied_count(self, count: int) -> None:
        pass

    def applied_name(self, name: str) -> None:
        pass

    def error_applying(self, error: Exception) -> None:
        pass

    def broken_migration(self, name: str) -> None:
        pass

    def reverting(self, target: Optional[str] = None) -> None:
        pass

    def reverted_count(self, count: int) -> None:
        pass

    def reverted_name(self, name: str) -> None:
        pass

    def nothing_to_revert(self) -> None:
        pass

    def searching(self, status: str) -> None:
        pass

    def found_count(self, status: str, count: int) -> None:
        pass

    def found_name(self, name: str) -> None:
        pass


class ConsoleReporter(MigrationReporter):
    """Reporter for the CLI: lifecycle to logging, names to a rich console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)

    def _item(self, name: str, style: str = "cyan", prefix: str = "") -> None:
        self.console.print(f"[{style}]=>[/{style}] {prefix}{name}")

    def looking_for_pending(self) -> None:
        logger.info("Looking for pending migrations...")

    def no_pending(self) -> None:
        logger.info("No pending migrations to apply")

    def applying_pending(self, count: int) -> None:
        logger.info(f"Applying {count} pending migration(s)...")

    def applied_count(self, count: int) -> None:
        logger.info(f"{count} applied migration(s)")

    def applied_name(self, name: str) -> None:
        self._item(name, style="green")

    def error_applying(self, error: Exception) -> None:
        logger.error(f"Error while applying migrations: {error}")
        logger.info("Looking for migration that has problems...")

    def broken_migration(self, name: str) -> None:
        logger.error(f"Something wrong with {name}")

    def reverting(self, target: Optional[str] = None) -> None:
        if target:
            logger.info(f"Trying to revert {target}...")
        else:
            logger.info("Reverting applied migrations...")

    def reverted_count(self, count: int) -> None:
        logger.info(f"{count} reverted migration(s)")

    def reverted_name(self, name: str) -> None:
        self._item(name, style="yellow", prefix="reverted ")

    def nothing_to_revert(self) -> None:
        logger.info("There are no migrations to revert")

    def searching(self, status: str) -> None:
        logger.info(f"Searching for {status} migrations...")

    def found_count(self, status: str, count: int) -> None:
        logger.info(f"{count} {status} migration(s)")

    def found_name(self, name: str) -> None:
        self._item(name)
