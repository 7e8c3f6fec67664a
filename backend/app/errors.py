class ServiceError(Exception):
    """Base class for errors raised by the auth and config services."""


class DuplicateUsername(ServiceError):
    def __init__(self, username: str):
        super().__init__("Username already exists")
        self.username = username


class StorageError(ServiceError):
    """An underlying store failure that is not handled locally."""
