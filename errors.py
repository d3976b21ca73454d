"""Exception types shared by the services and mapped to HTTP status by the web layer."""


class DashboardError(Exception):
    status_code = 500
    label = "Internal server error"


class ValidationError(DashboardError):
    status_code = 400
    label = "Bad request"


class ConflictError(ValidationError):
    """Symbol already taken by another company."""


class NotFoundError(DashboardError):
    status_code = 404
    label = "Resource not found"


class StoreError(DashboardError):
    """A query or write against the database failed."""
