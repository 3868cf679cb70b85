"""JSON schemas for transport action request bodies.

Each route's schema is the transport's target schema combined with the
action's own properties. Schemas are built once at startup and are
read-only afterwards.
"""

from typing import Any

FILE_URI: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {"type": "string"},
        "params": {"type": "object"},
    },
    "required": ["path", "params"],
}

TASK_FILE: dict[str, Any] = {
    "type": "object",
    "properties": {
        "filename": {"type": "string"},
        "sha256": {"type": "string"},
        "size_bytes": {"type": "integer"},
        "uri": FILE_URI,
    },
    "required": ["filename", "sha256", "uri"],
}

TARGET_COMMON: dict[str, Any] = {
    "hostname": {"type": "string"},
    "user": {"type": "string"},
    "port": {"type": "integer"},
    "password": {"type": "string"},
    "connect-timeout": {"type": "integer"},
}

TARGET_SSH: dict[str, Any] = {
    "type": "object",
    "properties": {
        **TARGET_COMMON,
        "private-key-content": {"type": "string"},
        "host-key-check": {"type": "boolean"},
        "tmpdir": {"type": "string"},
    },
    "required": ["hostname", "user"],
    "oneOf": [
        {"required": ["password"]},
        {"required": ["private-key-content"]},
    ],
}

TARGET_WINRM: dict[str, Any] = {
    "type": "object",
    "properties": {
        **TARGET_COMMON,
        "ssl": {"type": "boolean"},
        "ssl-verify": {"type": "boolean"},
    },
    "required": ["hostname", "user", "password"],
    # WinRM authenticates with a password only.
    "not": {"required": ["private-key-content"]},
}

TARGET_SCHEMAS: dict[str, dict[str, Any]] = {
    "ssh": TARGET_SSH,
    "winrm": TARGET_WINRM,
}

ACTION_PROPERTIES: dict[str, dict[str, Any]] = {
    "run_task": {
        "properties": {
            "task": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "metadata": {"type": "object"},
                    "files": {"type": "array", "items": TASK_FILE, "minItems": 1},
                },
                "required": ["name", "files"],
            },
            "parameters": {"type": "object"},
        },
        "required": ["task"],
    },
    "run_command": {
        "properties": {"command": {"type": "string"}},
        "required": ["command"],
    },
    "run_script": {
        "properties": {
            "script": TASK_FILE,
            "arguments": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["script"],
    },
    "upload_file": {
        "properties": {
            "destination": {"type": "string"},
            "files": {
                "type": "array",
                "minItems": 1,
                "items": {
                    "type": "object",
                    "properties": {
                        "relative_path": {"type": "string"},
                        "uri": FILE_URI,
                        "sha256": {"type": "string"},
                        "kind": {"enum": ["file", "directory"]},
                    },
                    "required": ["relative_path", "kind"],
                    "if": {"properties": {"kind": {"const": "file"}}},
                    "then": {"required": ["uri", "sha256"]},
                },
            },
        },
        "required": ["files", "destination"],
    },
    "check_node_connections": {
        "properties": {},
        "required": [],
    },
}

# Fields every action body may carry besides its own properties.
PASSTHROUGH_PROPERTIES: dict[str, Any] = {
    "job_id": {},
    "description": {"type": "string"},
}


def build_schema(transport: str, action: str) -> dict[str, Any]:
    """Build the request body schema for a route.

    Args:
        transport: Registered transport name
        action: Registered action name

    Returns:
        JSON schema (draft 7) for the request body

    Raises:
        KeyError: If the transport or action has no schema
    """
    target = TARGET_SCHEMAS[transport]
    action_schema = ACTION_PROPERTIES[action]
    return {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "type": "object",
        "properties": {
            "target": target,
            "targets": {"type": "array", "items": target, "minItems": 1},
            **action_schema["properties"],
            **PASSTHROUGH_PROPERTIES,
        },
        "required": list(action_schema["required"]),
        "oneOf": [
            {"required": ["target"]},
            {"required": ["targets"]},
        ],
        "additionalProperties": False,
    }
