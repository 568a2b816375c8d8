from __future__ import annotations

from typing import Any, Dict, Optional


class VaultError(Exception):
    """
    Base error for the access and versioning core.

    Every subclass carries a stable ``code`` and an HTTP-equivalent
    ``status_code`` so the surrounding controller layer can map failures
    without inspecting messages:
    - attributes: message/code/status_code/details/user_message
    - method: to_dict()
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "VAULT_ERROR",
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details: Dict[str, Any] = details or {}
        self.user_message = user_message or message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
        }

    def __str__(self) -> str:  # pragma: no cover
        return self.message


class NotFoundError(VaultError):
    def __init__(self, entity: str, entity_id: Any = None, **kwargs: Any):
        message = f"{entity} not found"
        if entity_id is not None:
            message += f": {entity_id}"
        details: Dict[str, Any] = {"entity": entity, "id": entity_id}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=404,
            details=details,
            user_message=f"{entity} not found",
        )


class DuplicateError(VaultError):
    code = "DUPLICATE"

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            code=self.code,
            status_code=409,
            details=dict(kwargs),
            user_message=message,
        )


class DuplicateAssignmentError(DuplicateError):
    code = "DUPLICATE_ASSIGNMENT"


class DuplicateEdgeError(DuplicateError):
    code = "DUPLICATE_EDGE"


class DuplicateNameError(DuplicateError):
    code = "DUPLICATE_NAME"


class CycleDetectedError(VaultError):
    def __init__(self, parent_role_id: int, child_role_id: int, **kwargs: Any):
        details: Dict[str, Any] = {
            "parent_role_id": parent_role_id,
            "child_role_id": child_role_id,
        }
        details.update(kwargs)
        super().__init__(
            message=(
                f"Cannot create hierarchy {parent_role_id} -> {child_role_id}: "
                "would create circular dependency"
            ),
            code="CYCLE_DETECTED",
            status_code=409,
            details=details,
            user_message="Cannot create hierarchy: would create circular dependency",
        )


class PermissionDeniedError(VaultError):
    def __init__(self, action: str, resource: Optional[str] = None, **kwargs: Any):
        message = f"Permission denied for action: {action}"
        if resource:
            message += f" on resource: {resource}"

        details: Dict[str, Any] = {"action": action, "resource": resource}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="PERMISSION_DENIED",
            status_code=403,
            details=details,
            user_message="You don't have permission to perform this action",
        )


class ConcurrentModificationError(VaultError):
    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            code="CONCURRENT_MODIFICATION",
            status_code=409,
            details=dict(kwargs),
            user_message="The resource was modified by someone else; reload and retry",
        )


class InvalidStateError(VaultError):
    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            code="INVALID_STATE",
            status_code=409,
            details=dict(kwargs),
            user_message=message,
        )


class ValidationError(VaultError):
    def __init__(self, message: str, field: Optional[str] = None, **kwargs: Any):
        details: Dict[str, Any] = {"field": field} if field else {}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=422,
            details=details,
            user_message=f"Validation failed: {message}",
        )


class ConfigurationError(VaultError):
    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs: Any):
        details: Dict[str, Any] = {"config_key": config_key} if config_key else {}
        details.update(kwargs)
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            status_code=500,
            details=details,
            user_message="System configuration error",
        )
