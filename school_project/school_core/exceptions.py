class ServiceError(Exception):
    """Base error for every service-layer failure.

    `code` is the stable machine-readable kind callers branch on,
    `status_code` is what the HTTP layer answers with.
    """

    code = "SERVICE_ERROR"
    status_code = 500

    def __init__(self, message="Service error"):
        super().__init__(message)
        self.message = message

    def as_dict(self):
        return {"code": self.code, "message": self.message}


class ForbiddenError(ServiceError):
    """Raised when a role or tenant-ownership check fails (no side effect happened)."""

    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message="Access denied"):
        super().__init__(message)


class NotFoundError(ServiceError):
    """Raised when an entity is absent or belongs to another school."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        suffix = f" with id {entity_id}" if entity_id is not None else ""
        super().__init__(f"{entity}{suffix} not found")


class ServiceValidationError(ServiceError):
    """Raised for malformed or out-of-range input."""

    code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(ServiceError):
    """Raised when a write would break a uniqueness or referential rule."""

    code = "CONFLICT"
    status_code = 409
