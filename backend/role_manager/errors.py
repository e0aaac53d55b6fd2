from typing import Any, Iterable

from fastapi import status


class AppError(Exception):
    code: str = "APP_ERROR"
    message: str = "Application error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    details: Any | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any | None = None,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        if details is not None:
            self.details = details

        super().__init__(self.message)


class BadRequestError(AppError):
    code = "BAD_REQUEST"
    message = "Bad request"
    status_code = status.HTTP_400_BAD_REQUEST


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    message = "Validation error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(AppError):
    code = "NOT_FOUND"
    message = "Resource not found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    code = "CONFLICT_ERROR"
    message = "Resource conflict"
    status_code = status.HTTP_409_CONFLICT


class InternalError(AppError):
    code = "INTERNAL_ERROR"
    message = "Internal server error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class RecordNotFoundError(NotFoundError):
    """A permission or role looked up by id, slug or name does not exist."""

    def __init__(self, resource: str, field: str, value: Any):
        super().__init__(
            f"{resource} with {field} {value} not found",
            details={"resource": resource, "field": field, "value": str(value)},
        )
        self.resource = resource


class DuplicateRecordError(ConflictError):
    def __init__(self, resource: str, field: str):
        super().__init__(
            f"{resource} with this {field} already exists",
            details={"resource": resource, "field": field},
        )
        self.resource = resource


class InvalidPermissionReferenceError(BadRequestError):
    """A role write references a permission id that is malformed or unknown.

    Only the first offending id (in request order) is reported.
    """

    def __init__(self, permission_id: Any, *, malformed: bool):
        if malformed:
            message = f"Invalid permission ID: {permission_id}"
        else:
            message = f"Permission with ID {permission_id} does not exist"
        super().__init__(
            message,
            details={"permission_id": str(permission_id), "malformed": malformed},
        )
        self.permission_id = str(permission_id)
        self.malformed = malformed


class InvalidRoleNameError(BadRequestError):
    def __init__(self, name: str, reason: str):
        super().__init__(
            f"Invalid role name: {name}",
            details={"name": name, "reason": reason},
        )
        self.name = name


class NoRolesMatchedError(NotFoundError):
    message = "No roles found with the provided names"

    def __init__(self, role_names: Iterable[str]):
        names = sorted(set(role_names))
        super().__init__(details={"role_names": names})
        self.role_names = names


ERROR_CODE_BY_STATUS: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: BadRequestError.code,
    status.HTTP_404_NOT_FOUND: NotFoundError.code,
    status.HTTP_405_METHOD_NOT_ALLOWED: BadRequestError.code,
    status.HTTP_409_CONFLICT: ConflictError.code,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ValidationError.code,
}


def error_payload(
    code: str,
    message: str,
    details: Any | None = None,
) -> dict[str, Any]:
    return {"error": {"code": code, "message": message, "details": details}}


def resolve_error_code(status_code: int) -> str:
    if status_code in ERROR_CODE_BY_STATUS:
        return ERROR_CODE_BY_STATUS[status_code]
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return InternalError.code
    return "UNKNOWN_ERROR"
