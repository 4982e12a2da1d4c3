class StoreError(Exception):
    """Raised when a catalog store query or write fails."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation
