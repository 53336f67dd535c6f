"""
Error types for the graph sync pipeline

Only programming errors and authoritative-path failures are raised.
Cache and handler failures are logged at their boundary instead.
"""


class GraphSyncError(Exception):
    """Base class for graph sync errors"""


class MissingHandlerMetadataError(GraphSyncError):
    """Handler registered without an event name. Fatal at startup."""

    def __init__(self, handler_name: str):
        self.handler_name = handler_name
        super().__init__(
            f"Event handler {handler_name} is missing metadata: "
            f"declare an event_name or pass one to register()"
        )


class PageNotFoundError(GraphSyncError):
    def __init__(self, page_id: str):
        self.page_id = page_id
        super().__init__(f"Page with ID {page_id} not found")


class DatabaseNotFoundError(GraphSyncError):
    def __init__(self, database_id: str):
        self.database_id = database_id
        super().__init__(f"Database with ID {database_id} not found")


class DatabaseNotEmptyError(GraphSyncError):
    """Raised when deleting a database that still has pages assigned"""

    def __init__(self, database_id: str, page_count: int):
        self.database_id = database_id
        self.page_count = page_count
        super().__init__(
            f"Database {database_id} still has {page_count} page(s); "
            f"move or delete them first"
        )
