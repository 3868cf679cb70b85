"""Request body validation.

Every schema violation is collected so one 400 response can report all of
them. Messages name the offending property with a ``#/``-rooted path.
"""

import json
import logging
import re
from typing import TYPE_CHECKING, Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError

from bolt_server.errors import RequestValidationError, Violation
from bolt_server.models import ExecutionRequest, Target

if TYPE_CHECKING:
    from bolt_server.transports.registry import Route, RouteTable

logger = logging.getLogger(__name__)

_REQUIRED_RE = re.compile(r"^'(?P<name>.*)' is a required property$")

_JSON_TYPES: list[tuple[type, str]] = [
    (bool, "boolean"),
    (int, "integer"),
    (float, "number"),
    (str, "string"),
    (list, "array"),
    (dict, "object"),
]


def json_type(instance: Any) -> str:
    """Return the JSON type name of a decoded value."""
    if instance is None:
        return "null"
    for py_type, name in _JSON_TYPES:
        if isinstance(instance, py_type):
            return name
    return type(instance).__name__


def property_path(error: ValidationError) -> str:
    """Render an error's location as ``#/a/b``."""
    return "#/" + "/".join(str(p) for p in error.absolute_path)


def format_error(error: ValidationError) -> str:
    """Turn a jsonschema error into a human readable message."""
    path = property_path(error)
    instance = error.instance
    keyword = error.validator

    if keyword == "type":
        expected = error.validator_value
        if isinstance(expected, list):
            return (
                f"The property '{path}' of type {json_type(instance)} did not "
                f"match one or more of the following types: {', '.join(expected)}"
            )
        return (
            f"The property '{path}' of type {json_type(instance)} did not "
            f"match the following type: {expected}"
        )

    if keyword == "required":
        match = _REQUIRED_RE.match(error.message)
        name = match.group("name") if match else error.message
        return f"The property '{path}' did not contain a required property of '{name}'"

    if keyword == "oneOf":
        # No sub-errors means several branches matched.
        if error.context:
            return (
                f"The property '{path}' of type {json_type(instance)} did not "
                "match any of the required schemas"
            )
        return (
            f"The property '{path}' of type {json_type(instance)} matched more "
            "than one of the required schemas"
        )

    if keyword == "additionalProperties":
        known = error.schema.get("properties", {})
        extra = sorted(k for k in instance if k not in known)
        return (
            f"The property '{path}' contains additional properties "
            f"{json.dumps(extra)} outside of the schema when none are allowed"
        )

    if keyword == "enum":
        allowed = ", ".join(str(v) for v in error.validator_value)
        return (
            f"The property '{path}' value {json.dumps(instance)} did not match "
            f"one of the following values: {allowed}"
        )

    if keyword == "not":
        forbidden = error.validator_value.get("required", [])
        if forbidden:
            names = ", ".join(f"'{name}'" for name in forbidden)
            return f"The property '{path}' must not contain the property {names}"
        return f"The property '{path}' matched a schema it must not match"

    if keyword == "minItems":
        return (
            f"The property '{path}' did not contain a minimum number of items "
            f"{error.validator_value}"
        )

    return f"The property '{path}' {error.message}"


class RequestValidator:
    """Validates request bodies against per-route schemas.

    Compiled validators are created once per route and shared by all
    requests; nothing is mutated after construction.
    """

    def __init__(self, routes: "RouteTable", default_connect_timeout: int = 10) -> None:
        self.default_connect_timeout = default_connect_timeout
        self._validators: dict[tuple[str, str], Draft7Validator] = {}
        for route in routes:
            Draft7Validator.check_schema(route.schema)
            self._validators[route.key] = Draft7Validator(route.schema)

    def violations(self, route: "Route", body: Any) -> list[Violation]:
        """Return every violation of the route's schema, in path order."""
        validator = self._validators[route.key]
        errors = sorted(
            validator.iter_errors(body),
            key=lambda e: ([str(p) for p in e.absolute_path], str(e.validator)),
        )
        return [Violation(property_path(e), format_error(e)) for e in errors]

    def validate(self, route: "Route", body: Any) -> ExecutionRequest:
        """Validate a body and build the execution request.

        Args:
            route: Resolved route
            body: Decoded JSON body

        Returns:
            ExecutionRequest with immutable targets and work item

        Raises:
            RequestValidationError: With every violation found
        """
        violations = self.violations(route, body)
        if violations:
            logger.info(
                "Rejected %s/%s request with %d violation(s)",
                route.transport,
                route.action,
                len(violations),
            )
            raise RequestValidationError(violations)

        aggregate = "targets" in body
        raw_targets = body["targets"] if aggregate else [body["target"]]
        targets = tuple(
            Target.from_data(route.transport, t, self.default_connect_timeout)
            for t in raw_targets
        )
        return ExecutionRequest(
            transport=route.transport,
            action=route.action,
            targets=targets,
            work=route.build_work(body),
            aggregate=aggregate,
        )


def parse_body(raw: bytes) -> Any:
    """Decode a JSON request body.

    Raises:
        RequestValidationError: If the body is not valid JSON
    """
    try:
        return json.loads(raw or b"null")
    except ValueError as e:
        raise RequestValidationError(
            [Violation("#/", f"The request body is not valid JSON: {e}")]
        ) from e
