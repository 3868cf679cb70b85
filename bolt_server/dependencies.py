"""Dependency injection container for bolt_server.

Everything a request needs is built once at startup and is read-only
afterwards, apart from the file cache's on-disk state.
"""

import logging
from dataclasses import dataclass

from bolt_server.config import Config
from bolt_server.services.dispatcher import Dispatcher
from bolt_server.services.executor import Executor
from bolt_server.services.file_cache import FileCache
from bolt_server.services.validation import RequestValidator
from bolt_server.transports import RouteTable, TransportRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass
class Dependencies:
    """Container for bolt_server dependencies.

    Example:
        deps = Dependencies.create()
        app = create_app(deps)
    """

    config: Config
    registry: TransportRegistry
    routes: RouteTable
    validator: RequestValidator
    file_cache: FileCache
    executor: Executor
    dispatcher: Dispatcher

    @classmethod
    def create(cls) -> "Dependencies":
        """Create dependencies from environment configuration."""
        return cls.from_config(Config.from_env())

    @classmethod
    def from_config(
        cls,
        config: Config,
        registry: TransportRegistry | None = None,
        file_cache: FileCache | None = None,
    ) -> "Dependencies":
        """Create dependencies with custom configuration.

        Args:
            config: Config instance
            registry: Transports to use, defaults to SSH and WinRM
            file_cache: File cache to use, defaults to one built from config

        Returns:
            Dependencies with every service initialized

        Raises:
            RouteRegistrationError: If a declared route cannot be served
        """
        settings = config.settings
        if registry is None:
            registry = default_registry(known_hosts=config.known_hosts_path)
        if file_cache is None:
            file_cache = FileCache(
                cache_dir=settings.cache_dir,
                base_url=settings.file_server_url,
                timeout=settings.file_server_timeout,
                verify=settings.file_server_verify,
                cert=settings.file_server_client_cert,
            )

        routes = RouteTable(registry)
        validator = RequestValidator(routes, default_connect_timeout=config.connect_timeout)
        executor = Executor(registry, file_cache)
        dispatcher = Dispatcher(executor, max_concurrency=config.max_concurrency)
        return cls(
            config=config,
            registry=registry,
            routes=routes,
            validator=validator,
            file_cache=file_cache,
            executor=executor,
            dispatcher=dispatcher,
        )

    async def cleanup(self) -> None:
        """Release resources held across requests."""
        await self.file_cache.close()
