"""
Declaration Validation - JSON Schema checks for ingress declarations.

Declarations that fail validation still produce a managed resource, but it
is tainted and left untouched for the cycle.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)

_BACKEND_SCHEMA = {
    "type": "object",
    "required": ["serviceName", "servicePort"],
    "properties": {
        "serviceName": {"type": "string", "minLength": 1},
        "servicePort": {"type": ["integer", "string"]},
    },
}

INGRESS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["metadata", "spec"],
    "properties": {
        "metadata": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": {"type": "string", "minLength": 1},
                "namespace": {"type": "string", "minLength": 1},
                "annotations": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                },
            },
        },
        "spec": {
            "type": "object",
            "properties": {
                "backend": _BACKEND_SCHEMA,
                "rules": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "host": {"type": "string"},
                            "http": {
                                "type": "object",
                                "required": ["paths"],
                                "properties": {
                                    "paths": {
                                        "type": "array",
                                        "items": {
                                            "type": "object",
                                            "required": ["backend"],
                                            "properties": {
                                                "path": {"type": "string"},
                                                "backend": _BACKEND_SCHEMA,
                                            },
                                        },
                                    }
                                },
                            },
                        },
                    },
                },
            },
        },
    },
}


def validate_against_schema(
    document: Dict[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a document against a JSON Schema.

    Args:
        document: The document to validate
        schema: The JSON Schema to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    validator = Draft7Validator(schema)
    errors = sorted(
        validator.iter_errors(document),
        key=lambda e: [str(p) for p in e.absolute_path],
    )

    if not errors:
        return True, None

    error_messages = []
    for error in errors:
        path = ".".join(str(p) for p in error.absolute_path) or "(root)"
        error_messages.append(f"{path}: {error.message}")

    return False, "; ".join(error_messages)


def validate_ingress(declaration: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate an ingress declaration."""
    return validate_against_schema(declaration, INGRESS_SCHEMA)
