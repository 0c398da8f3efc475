"""Custom exceptions"""

from typing import Optional


class AppError(Exception):
    """Base application error"""

    pass


class TreeError(AppError):
    """Tree engine error"""

    pass


class NodeNotFoundError(TreeError):
    """Node id is not present in the tree"""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class InvalidOperationError(TreeError):
    """Mutation rejected before touching the tree"""

    def __init__(self, message: str, reason: str = "invalid"):
        super().__init__(message)
        self.reason = reason


class ServiceError(AppError):
    """Service layer error"""

    pass


class PartialPasteError(ServiceError):
    """Paste aborted after some nodes were already created"""

    def __init__(self, message: str, created_ids: list[str], cause: Optional[BaseException] = None):
        super().__init__(message)
        self.created_ids = created_ids
        self.cause = cause


class ReconciliationError(ServiceError):
    """Authoritative tree could not be refetched"""

    pass
