"""Services for bolt_server."""

from bolt_server.services.dispatcher import Dispatcher
from bolt_server.services.executor import Executor
from bolt_server.services.file_cache import FileCache
from bolt_server.services.sanitizer import scrub_outcome
from bolt_server.services.validation import RequestValidator, parse_body

__all__ = [
    "Dispatcher",
    "Executor",
    "FileCache",
    "RequestValidator",
    "parse_body",
    "scrub_outcome",
]
