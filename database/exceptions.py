"""Database layer exceptions."""


class DatabaseError(Exception):
    """Raised when a database operation fails."""
    pass


class DatabaseSchemaError(DatabaseError):
    """Raised when schema files are invalid or a migration cannot be applied."""
    pass
