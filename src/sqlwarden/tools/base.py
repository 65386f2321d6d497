"""Tool definitions for agent integrations."""

from __future__ import annotations

import inspect
import types
from collections.abc import Callable
from typing import Any, Literal, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel


class ToolDefinition(BaseModel):
    """A callable SQLWarden operation described for agent consumption.

    Exports to OpenAI function calling and Anthropic tool formats.
    """

    name: str
    description: str
    parameters: dict[str, Any]
    function: Callable[..., Any] | None = None

    model_config = {"arbitrary_types_allowed": True}

    def __call__(self, **arguments: Any) -> Any:
        """Invoke the underlying function with keyword arguments."""
        if self.function is None:
            raise TypeError(f"Tool '{self.name}' has no function bound")
        return self.function(**arguments)

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic_format(self) -> dict[str, Any]:
        """Convert to Anthropic tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to generic dict format."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


_SCALAR_SCHEMAS: dict[Any, dict[str, Any]] = {
    str: {"type": "string"},
    int: {"type": "integer"},
    float: {"type": "number"},
    bool: {"type": "boolean"},
    list: {"type": "array"},
    dict: {"type": "object"},
    type(None): {"type": "null"},
}


def annotation_to_json_schema(annotation: Any) -> dict[str, Any]:
    """Convert a type annotation to a JSON Schema fragment.

    Optional types collapse to their inner type; Literal values become an enum.
    Unknown annotations fall back to string.
    """
    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Literal:
        return {"type": "string", "enum": list(args)}

    if origin in (Union, types.UnionType):
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1:
            return annotation_to_json_schema(non_none[0])
        return {"anyOf": [annotation_to_json_schema(a) for a in non_none]}

    if origin is list:
        if args:
            return {"type": "array", "items": annotation_to_json_schema(args[0])}
        return {"type": "array"}

    if origin is dict:
        return {"type": "object"}

    return dict(_SCALAR_SCHEMAS.get(annotation, {"type": "string"}))


def _docstring_summary(func: Callable[..., Any]) -> str | None:
    doc = inspect.getdoc(func)
    if not doc:
        return None
    return doc.split("\n\n", 1)[0].replace("\n", " ").strip()


def function_to_tool_definition(
    func: Callable[..., Any],
    name: str | None = None,
    description: str | None = None,
) -> ToolDefinition:
    """Build a ToolDefinition from a function signature.

    Args:
        func: Function to expose
        name: Tool name (function name if omitted)
        description: Tool description (first docstring paragraph if omitted)

    Returns:
        ToolDefinition bound to ``func``
    """
    tool_name = name or func.__name__
    tool_description = description or _docstring_summary(func) or f"Execute {tool_name}"

    signature = inspect.signature(func)
    hints = get_type_hints(func)

    properties: dict[str, Any] = {}
    required: list[str] = []

    for param_name, param in signature.parameters.items():
        if param_name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue

        schema = annotation_to_json_schema(hints.get(param_name, str))
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
        elif param.default is not None:
            schema["default"] = param.default
        properties[param_name] = schema

    parameters: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        parameters["required"] = required

    return ToolDefinition(
        name=tool_name,
        description=tool_description,
        parameters=parameters,
        function=func,
    )
