"""Migration registry for discovering and ordering migration units.

Provides:
- Discovery of migration modules in a directory
- Lexical ordering by unit name
- Duplicate name detection
"""

import importlib.util
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Optional, Union

from .base import BaseMigration, FunctionMigration, MigrationError

logger = logging.getLogger(__name__)


class MigrationRegistry:
    """Registry for managing and ordering migration units.

    Units are ordered lexically by name, so names should carry a
    sortable prefix (sequence number or timestamp).
    """

    def __init__(self):
        """Initialize empty registry."""
        self._migrations: dict[str, BaseMigration] = {}
        self._sorted: Optional[list[BaseMigration]] = None

    def register(self, migration: BaseMigration) -> None:
        """Register a migration.

        Args:
            migration: Migration instance to register

        Raises:
            MigrationError: If the name is already registered
        """
        if migration.name in self._migrations:
            existing = self._migrations[migration.name]
            raise MigrationError(
                f"Duplicate migration name {migration.name}: "
                f"{type(existing).__name__} and {type(migration).__name__}"
            )

        self._migrations[migration.name] = migration
        self._sorted = None  # Invalidate cache

    def get(self, name: str) -> Optional[BaseMigration]:
        """Get a migration by name.

        Args:
            name: Migration name

        Returns:
            Migration instance or None
        """
        return self._migrations.get(name)

    def get_all(self) -> list[BaseMigration]:
        """Get all migrations in order.

        Returns:
            List of migrations sorted by name
        """
        if self._sorted is None:
            self._sorted = [self._migrations[n] for n in sorted(self._migrations)]
        return self._sorted.copy()

    def get_names(self) -> list[str]:
        """Get all registered names in order."""
        return [m.name for m in self.get_all()]

    def __len__(self) -> int:
        return len(self._migrations)


def _load_module(path: Path) -> ModuleType:
    spec = importlib.util.spec_from_file_location(f"schemaledger_migrations.{path.stem}", path)
    if spec is None or spec.loader is None:
        raise MigrationError(f"Cannot load migration file {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


def migration_from_module(module: ModuleType, default_name: str) -> BaseMigration:
    """Build the migration unit a module defines.

    A module either defines a BaseMigration subclass, or exposes
    module-level ``up`` (and optionally ``down``) coroutine functions,
    in which case the unit is named after the file.

    Raises:
        MigrationError: If the module defines no migration or more than one
    """
    candidates = [
        attr
        for attr in vars(module).values()
        if isinstance(attr, type)
        and issubclass(attr, BaseMigration)
        and attr.__module__ == module.__name__
        and not getattr(attr, "_name_from_init", False)
    ]
    if len(candidates) > 1:
        names = ", ".join(sorted(c.__name__ for c in candidates))
        raise MigrationError(
            f"Module {default_name} defines more than one migration ({names}); "
            "use one file per migration"
        )
    if candidates:
        return candidates[0]()

    up = getattr(module, "up", None)
    if callable(up):
        down = getattr(module, "down", None)
        return FunctionMigration(default_name, up, down if callable(down) else None)

    raise MigrationError(f"Module {default_name} defines no migration (no BaseMigration or up())")


def discover_migrations(path: Union[str, Path]) -> MigrationRegistry:
    """Discover all migrations in a directory.

    Every ``*.py`` file not starting with an underscore is loaded.

    Args:
        path: Directory holding migration files

    Returns:
        Registry with discovered migrations

    Raises:
        MigrationError: If the directory is missing or a file fails to load
    """
    directory = Path(path)
    if not directory.is_dir():
        raise MigrationError(f"Migrations directory not found: {directory}")

    registry = MigrationRegistry()

    for file_path in sorted(directory.glob("*.py")):
        if file_path.name.startswith("_"):
            continue

        try:
            module = _load_module(file_path)
        except MigrationError:
            raise
        except Exception as e:
            raise MigrationError(f"Failed to load migration {file_path.name}: {e}") from e

        migration = migration_from_module(module, file_path.stem)
        if migration.name != file_path.stem:
            logger.warning(
                f"Migration name {migration.name} differs from its file name {file_path.name}"
            )
        registry.register(migration)
        logger.debug(f"Discovered migration: {migration.full_name}")

    return registry
