class StorageFailure(Exception):
    """The database rejected or failed an operation (I/O, constraint violation)."""
