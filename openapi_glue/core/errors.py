"""
Exceptions raised while binding a route table to a service.

ConfigError aborts registration. The others are contained to one route or one
request and are turned into JSON responses by the handlers in openapi_glue.main.
"""


class GlueError(Exception):
    """Base class for openapi-glue errors."""

    status_code: int = 500


class ConfigError(GlueError):
    """Invalid service object or unusable route table. Fatal at registration."""

    pass


class ResolutionGap(GlueError):
    """Raised by the stub handler of an operation with no implementation."""

    def __init__(self, operation_id: str) -> None:
        self.operation_id = operation_id
        super().__init__(f"Operation {operation_id} not implemented")


class RequestValidationFailure(GlueError):
    """Request params, query, headers or body do not match the request schema."""

    status_code = 400


class ResponseValidationFailure(GlueError):
    """Handler output does not match the response schema for its status code."""

    status_code = 500
