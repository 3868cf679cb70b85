"""Error types for bolt_server.

Errors raised while talking to a target carry the ``_error`` payload that
ends up in that target's result. Request-level errors (bad routes, invalid
bodies) are mapped to HTTP responses by the server.
"""

from dataclasses import dataclass
from typing import Any


class BoltError(Exception):
    """Error that can be reported as a target's ``_error`` value."""

    kind = "puppetlabs.tasks/error"
    issue_code = "ERROR"

    def __init__(
        self,
        msg: str,
        kind: str | None = None,
        issue_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize error.

        Args:
            msg: Human readable message
            kind: Error kind, defaults to the class kind
            issue_code: Issue code, defaults to the class issue code
            details: Extra structured detail
        """
        super().__init__(msg)
        self.msg = msg
        if kind is not None:
            self.kind = kind
        if issue_code is not None:
            self.issue_code = issue_code
        self.details = dict(details or {})

    def to_data(self) -> dict[str, Any]:
        """Return the ``_error`` representation of this error."""
        return {
            "kind": self.kind,
            "issue_code": self.issue_code,
            "msg": self.msg,
            "details": dict(self.details),
        }


class ConnectError(BoltError):
    """Failed to establish a session with a target."""

    kind = "puppetlabs.tasks/connect-error"
    issue_code = "CONNECT_ERROR"

    def __init__(self, host_name: str, msg: str, **kwargs: Any) -> None:
        """Initialize connection error.

        Args:
            host_name: Hostname of the target
            msg: Human readable message
        """
        self.host_name = host_name
        super().__init__(msg, **kwargs)


class AuthenticationError(ConnectError):
    """Target rejected the supplied credentials."""

    issue_code = "AUTH_ERROR"


class HostKeyError(ConnectError):
    """Host key or certificate could not be verified."""

    issue_code = "HOST_KEY_ERROR"


class ConnectTimeout(ConnectError):
    """Connection did not complete within connect-timeout."""

    issue_code = "CONNECT_TIMEOUT"


class ProtocolError(ConnectError):
    """Transport protocol negotiation or session failure."""

    issue_code = "PROTOCOL_ERROR"


class RemoteError(BoltError):
    """A remote operation other than the work item itself failed."""

    kind = "bolt/node-error"
    issue_code = "NODE_ERROR"


class UploadError(RemoteError):
    """Copying a file to the target failed."""

    issue_code = "UPLOAD_ERROR"


class FileCacheError(BoltError):
    """A task, script or upload file could not be retrieved."""

    kind = "puppetlabs.tasks/file-error"
    issue_code = "FILE_ERROR"


@dataclass(frozen=True)
class Violation:
    """A single schema rule broken by a request body."""

    property: str
    message: str

    def to_data(self) -> dict[str, str]:
        return {"property": self.property, "message": self.message}


class RequestValidationError(Exception):
    """Request body does not match the route's schema."""

    kind = "boltserver/schema-error"
    msg = "There was an error validating the request body."

    def __init__(self, violations: list[Violation]) -> None:
        self.violations = list(violations)
        super().__init__(
            "; ".join(v.message for v in self.violations) or self.msg
        )

    def to_data(self) -> dict[str, Any]:
        """Return the 400 response body."""
        return {
            "status": "failure",
            "value": {
                "_error": {
                    "kind": self.kind,
                    "msg": self.msg,
                    "details": [v.message for v in self.violations],
                    "violations": [v.to_data() for v in self.violations],
                }
            },
        }


class RouteNotFound(Exception):
    """No route is registered for the requested path."""

    kind = "boltserver/not-found"

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Could not find route {path}")

    def to_data(self) -> dict[str, str]:
        return {"msg": str(self), "kind": self.kind}


class RouteRegistrationError(RuntimeError):
    """Route table references a transport or action with no handler."""


class InternalError(BoltError):
    """Unexpected fault while running work against a target."""

    kind = "boltserver/internal-error"
    issue_code = "INTERNAL_ERROR"
