from bpmnvault.exceptions.handlers import (
    ConcurrentModificationError,
    ConfigurationError,
    CycleDetectedError,
    DuplicateAssignmentError,
    DuplicateEdgeError,
    DuplicateError,
    DuplicateNameError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    VaultError,
)

__all__ = [
    "VaultError",
    "NotFoundError",
    "DuplicateError",
    "DuplicateAssignmentError",
    "DuplicateEdgeError",
    "DuplicateNameError",
    "CycleDetectedError",
    "PermissionDeniedError",
    "ConcurrentModificationError",
    "InvalidStateError",
    "ValidationError",
    "ConfigurationError",
]
