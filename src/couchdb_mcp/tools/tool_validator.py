"""Argument validation for dispatched tool calls.

Arguments are validated with jsonschema against the exact ``inputSchema`` each
ToolDescriptor advertises, so the enforced contract is the advertised one.

Violations are caller bugs and raise InvalidArgumentsError (a protocol fault);
they are never turned into tool results.
"""

import logging
from typing import Any

from jsonschema import Draft7Validator, ValidationError

from ..exceptions import InvalidArgumentsError
from .models import ToolDescriptor

logger = logging.getLogger(__name__)

_TYPE_NAMES = {
    "string": "a string",
    "number": "a number",
    "integer": "an integer",
    "boolean": "a boolean",
    "object": "an object",
    "array": "an array",
    "null": "null",
}


def error_path(error: ValidationError) -> str:
    """Render an error location as ``filters[0].field``."""
    path = ""
    for part in error.absolute_path:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def describe_error(error: ValidationError) -> list[str]:
    """Human readable messages for one jsonschema error."""
    path = error_path(error)

    if error.validator == "required":
        prefix = f"{path}." if path else ""
        return [
            f"{prefix}{name} is required"
            for name in error.validator_value
            if name not in error.instance
        ]

    if error.validator in ("minLength", "pattern"):
        return [f"{path} must be a non-empty string"]

    if error.validator == "type":
        expected = error.validator_value
        if isinstance(expected, str):
            expected = [expected]
        names = " or ".join(_TYPE_NAMES.get(name, name) for name in expected)
        return [f"{path} must be {names}"]

    return [f"{path or 'arguments'}: {error.message}"]


def validate_arguments(descriptor: ToolDescriptor, arguments: Any) -> dict[str, Any]:
    """Validate raw call arguments against a tool descriptor.

    Args:
        descriptor: The tool being called
        arguments: Arguments object as received from the client (None means {})

    Returns:
        The arguments with null optional values removed

    Raises:
        InvalidArgumentsError: Listing every violation found
    """
    if arguments is None:
        arguments = {}

    if not isinstance(arguments, dict):
        raise InvalidArgumentsError(
            message=f"Invalid arguments for {descriptor.name}: arguments must be an object",
            details={"tool": descriptor.name},
        )

    # null on a top-level argument means "use the default"
    cleaned: dict[str, Any] = {
        key: value for key, value in arguments.items() if value is not None
    }

    validator = Draft7Validator(descriptor.input_schema())
    messages: list[str] = []
    for error in validator.iter_errors(cleaned):
        messages.extend(describe_error(error))
    # minLength and pattern report the same blank string twice
    errors = list(dict.fromkeys(messages))

    if errors:
        logger.warning(f"Rejected {descriptor.name} call: {'; '.join(errors)}")
        raise InvalidArgumentsError(
            message=f"Invalid arguments for {descriptor.name}: {'; '.join(errors)}",
            details={"tool": descriptor.name, "errors": errors},
        )

    return cleaned
