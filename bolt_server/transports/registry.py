"""Transport registry and the static route table.

Routes are declared once as (transport, action) pairs. The table is
checked when it is built so a route that names an unregistered transport
or an unknown action stops the app before it serves anything.
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from bolt_server.errors import RouteNotFound, RouteRegistrationError
from bolt_server.models import (
    CheckConnection,
    FileRef,
    RunCommand,
    RunScript,
    RunTask,
    Task,
    UploadEntry,
    UploadFile,
    WorkItem,
)
from bolt_server.schemas import ACTION_PROPERTIES, TARGET_SCHEMAS, build_schema
from bolt_server.transports.base import Transport

logger = logging.getLogger(__name__)

WorkBuilder = Callable[[dict[str, Any]], WorkItem]


def build_run_task(body: dict[str, Any]) -> RunTask:
    return RunTask(
        task=Task.from_data(body["task"]),
        parameters=dict(body.get("parameters", {})),
    )


def build_run_command(body: dict[str, Any]) -> RunCommand:
    return RunCommand(command=body["command"])


def build_run_script(body: dict[str, Any]) -> RunScript:
    return RunScript(
        script=FileRef.from_data(body["script"]),
        arguments=tuple(body.get("arguments", [])),
    )


def build_upload_file(body: dict[str, Any]) -> UploadFile:
    return UploadFile(
        entries=tuple(UploadEntry.from_data(f) for f in body["files"]),
        destination=body["destination"],
    )


def build_check_connection(body: dict[str, Any]) -> CheckConnection:
    return CheckConnection()


ACTION_BUILDERS: dict[str, WorkBuilder] = {
    "run_task": build_run_task,
    "run_command": build_run_command,
    "run_script": build_run_script,
    "upload_file": build_upload_file,
    "check_node_connections": build_check_connection,
}

ACTIONS = tuple(ACTION_BUILDERS)

ROUTES: tuple[tuple[str, str], ...] = tuple(
    (transport, action) for transport in ("ssh", "winrm") for action in ACTIONS
)


@dataclass(frozen=True)
class Route:
    """A registered ``POST /{transport}/{action}`` endpoint."""

    transport: str
    action: str
    schema: dict[str, Any]
    build_work: WorkBuilder

    @property
    def key(self) -> tuple[str, str]:
        return (self.transport, self.action)

    @property
    def path(self) -> str:
        return f"/{self.transport}/{self.action}"


class TransportRegistry:
    """Transports available to the executor, by name."""

    def __init__(self) -> None:
        self._transports: dict[str, Transport] = {}

    def register(self, transport: Transport) -> None:
        """Register a transport under its name.

        Raises:
            ValueError: If the name is empty or already registered
        """
        if not transport.name:
            raise ValueError(f"{type(transport).__name__} has no name")
        if transport.name in self._transports:
            raise ValueError(f"Transport already registered: {transport.name}")
        self._transports[transport.name] = transport
        logger.debug("Registered transport: %s", transport.name)

    def get(self, name: str) -> Transport:
        """Look up a transport.

        Raises:
            KeyError: If no transport has that name
        """
        return self._transports[name]

    def names(self) -> list[str]:
        return list(self._transports)

    def __contains__(self, name: object) -> bool:
        return name in self._transports


class RouteTable:
    """Immutable mapping of (transport, action) to Route."""

    def __init__(
        self,
        registry: TransportRegistry,
        routes: tuple[tuple[str, str], ...] = ROUTES,
        builders: dict[str, WorkBuilder] | None = None,
    ) -> None:
        """Build and check the route table.

        Args:
            registry: Registered transports
            routes: Declared (transport, action) pairs
            builders: Work item builders by action

        Raises:
            RouteRegistrationError: If a route has no transport, schema or builder
        """
        builders = ACTION_BUILDERS if builders is None else builders
        self._routes: dict[tuple[str, str], Route] = {}
        for transport, action in routes:
            if transport not in registry:
                raise RouteRegistrationError(
                    f"Route /{transport}/{action} uses unregistered transport "
                    f"{transport!r}"
                )
            if transport not in TARGET_SCHEMAS:
                raise RouteRegistrationError(
                    f"Route /{transport}/{action} has no target schema"
                )
            if action not in builders or action not in ACTION_PROPERTIES:
                raise RouteRegistrationError(
                    f"Route /{transport}/{action} has no handler for action {action!r}"
                )
            self._routes[(transport, action)] = Route(
                transport=transport,
                action=action,
                schema=build_schema(transport, action),
                build_work=builders[action],
            )
        logger.info(
            "Route table built (%d routes, transports=%s)",
            len(self._routes),
            ",".join(registry.names()),
        )

    def resolve(self, transport: str, action: str) -> Route:
        """Find the route for a request path.

        Raises:
            RouteNotFound: If the transport or action is not registered
        """
        route = self._routes.get((transport, action))
        if route is None:
            raise RouteNotFound(f"/{transport}/{action}")
        return route

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes.values())

    def __len__(self) -> int:
        return len(self._routes)
