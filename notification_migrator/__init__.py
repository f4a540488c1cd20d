"""Migration of users, notification types and notifications to the new notifications database."""
from .errors import MigrationError
from .migration import MigrationSummary, run_migration

__version__ = '1.0.0'
