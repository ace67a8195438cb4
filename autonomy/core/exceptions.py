"""Custom exception types for the routing core and its storage layer."""


class AutonomyError(Exception):
    """Base autonomy exception."""


class DatabaseNotInitializedError(AutonomyError, RuntimeError):
    """The store was accessed before init_db() completed."""


class MigrationError(AutonomyError):
    """A schema migration unit failed and was rolled back."""

    def __init__(self, name: str, message: str):
        super().__init__(f"Migration {name} failed: {message}")
        self.name = name


class InvalidScheduleError(AutonomyError, ValueError):
    """Cron expression or timezone could not be parsed."""
