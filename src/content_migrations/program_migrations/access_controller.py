"""
Access controller rename repair.

Stores written by older releases persist the role-based access controller
under a misspelled type name (``RoleBasedccessController``). Current
releases cannot deserialize it, so the store fails to open. The controller
guards every permission in the store and cannot be rewritten safely, so
this repair only explains the recovery options and stops.
"""

import logging
from pathlib import Path

from ..exceptions import ManualInterventionRequired
from ..repository import ContentRepository
from .runner import ProgramMigration

logger = logging.getLogger(__name__)

LEGACY_CONTROLLER_NAME = "RoleBasedccessController"
CONTROLLER_NAME = "RoleBasedAccessController"


def _mentions_controller(error: BaseException) -> bool:
    current: BaseException | None = error
    while current is not None:
        message = str(current)
        if LEGACY_CONTROLLER_NAME in message or CONTROLLER_NAME in message:
            return True
        current = current.__cause__
    return False


class AccessControllerRenameMigration(ProgramMigration):
    """Detects stores blocked by the misspelled access controller type."""

    @property
    def id(self) -> str:
        return "001-access-controller-rename"

    @property
    def description(self) -> str:
        return f"Fix {LEGACY_CONTROLLER_NAME} typo in access control system"

    async def check(self, repository: ContentRepository) -> bool:
        try:
            await repository.list_categories()
        except Exception as e:
            if _mentions_controller(e):
                self.logger.warning("Detected access controller typo issue, migration needed")
                return True
            self.logger.debug(f"Repository error unrelated to access controller: {e}")
            return False

        self.logger.debug("Repository is readable, migration not needed")
        return False

    def recovery_options(self, data_dir: Path) -> list[str]:
        return [
            "Fresh deployment (recommended for new sites): stop this node, delete the "
            f"data directory {data_dir}, run setup again and re-import any necessary data",
            "Temporary compatibility mode: deploy a release that still reads the old "
            "type name, export all data, deploy the fixed release, import the export",
            "Wait for a release that ships a compatibility layer for the old type name",
        ]

    async def run(self, repository: ContentRepository, data_dir: Path) -> None:
        options = self.recovery_options(data_dir)

        self.logger.error(f"CRITICAL: {LEGACY_CONTROLLER_NAME} typo migration")
        self.logger.error("This migration requires manual intervention.")
        self.logger.error("The store cannot be migrated automatically because:")
        self.logger.error("  1. The misspelled type prevents the store from loading")
        self.logger.error("  2. The access controller manages critical permissions")
        self.logger.error("OPTIONS:")
        for index, option in enumerate(options, start=1):
            self.logger.error(f"  Option {index}: {option}")

        raise ManualInterventionRequired(
            "Manual intervention required - see instructions above",
            details={"migration_id": self.id, "data_dir": str(data_dir)},
            suggestions=options,
        )
