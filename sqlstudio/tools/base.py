"""Tool system base types and the @tool decorator."""

from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel, ConfigDict, Field

from sqlstudio.llm.models import ToolSpec

logger = logging.getLogger(__name__)
NONE_TYPE = type(None)
CONTEXT_PARAMETERS = ("ctx", "context")

_SCALAR_SCHEMAS: dict[Any, dict[str, Any]] = {
    bool: {"type": "boolean"},
    int: {"type": "integer"},
    float: {"type": "number"},
    str: {"type": "string"},
    dict: {"type": "object", "additionalProperties": True},
    NONE_TYPE: {"type": "null"},
}


class ToolCategory(StrEnum):
    SCHEMA = "schema"
    QUERY = "query"
    VISUALIZATION = "visualization"


class ToolPolicy(BaseModel):
    enabled: bool = True
    max_execution_time_seconds: int = Field(default=60, ge=1)


class ToolDefinition(BaseModel):
    name: str
    description: str
    category: ToolCategory
    policy: ToolPolicy
    parameters_schema: dict[str, Any]


class ToolContext(BaseModel):
    """Per-request state a tool handler receives alongside its arguments."""

    connection_id: str
    default_schema: str | None = None
    database: str | None = None
    read_only_sql: bool = False
    connections: Any = Field(default=None, description="ConnectionRegistry for this process")
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def log_action(self, action: str, metadata: dict[str, Any]) -> None:
        logger.info(
            "tool_action",
            extra={
                "connection_id": self.connection_id,
                "action": action,
                "metadata": metadata,
            },
        )


ToolResolver = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool as seen by one request: schema plus a resolver bound to its context."""

    name: str
    description: str
    input_schema: dict[str, Any]
    resolver: ToolResolver

    def to_spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name, description=self.description, input_schema=self.input_schema
        )


def _extract_parameters_schema(func: Callable[..., Any]) -> dict[str, Any]:
    signature = inspect.signature(func)
    type_hints = get_type_hints(func, include_extras=True)
    properties: dict[str, Any] = {}
    required: list[str] = []

    for name, param in signature.parameters.items():
        if name in CONTEXT_PARAMETERS:
            continue
        param_schema = _annotation_to_json_schema(type_hints.get(name, param.annotation))
        if param.default is inspect.Parameter.empty:
            required.append(name)
        elif param.default is not None:
            param_schema["default"] = param.default
        properties[name] = param_schema

    return {
        "type": "object",
        "properties": properties,
        "required": required,
    }


def _annotation_to_json_schema(annotation: Any) -> dict[str, Any]:
    if annotation is inspect.Parameter.empty or annotation is Any:
        return {}

    origin = get_origin(annotation)
    if origin is not None:
        return _origin_to_schema(origin, get_args(annotation))

    if annotation in _SCALAR_SCHEMAS:
        return dict(_SCALAR_SCHEMAS[annotation])
    if annotation in (list, tuple, set, frozenset):
        return {"type": "array", "items": {}}
    if inspect.isclass(annotation) and issubclass(annotation, BaseModel):
        schema = annotation.model_json_schema()
        schema.pop("title", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        return schema
    return {"type": "string"}


def _origin_to_schema(origin: Any, args: tuple[Any, ...]) -> dict[str, Any]:
    if origin is Literal:
        values = list(args)
        schema: dict[str, Any] = {"enum": values}
        value_types = {type(value) for value in values}
        if len(value_types) == 1:
            only = next(iter(value_types))
            if only in _SCALAR_SCHEMAS:
                schema.update(_SCALAR_SCHEMAS[only])
        return schema

    if origin in (list, tuple, set, frozenset):
        item_schema = _annotation_to_json_schema(args[0]) if args else {}
        return {"type": "array", "items": item_schema}

    if origin is dict:
        value_schema = _annotation_to_json_schema(args[1]) if len(args) > 1 else {}
        return {"type": "object", "additionalProperties": value_schema or True}

    if origin is Union or origin is types.UnionType:
        # Optional[X] is advertised as X; omission is how the model says "none".
        variants = [_annotation_to_json_schema(arg) for arg in args if arg is not NONE_TYPE]
        if len(variants) == 1:
            return variants[0]
        return {"anyOf": variants}

    return _annotation_to_json_schema(origin)


def tool(
    name: str,
    description: str,
    category: ToolCategory,
    **policy_kwargs: Any,
):
    """Declare a tool handler; its JSON schema is derived from the signature."""

    def decorator(func: Callable[..., Any]):
        from sqlstudio.tools.registry import ToolCatalog

        definition = ToolDefinition(
            name=name,
            description=description,
            category=category,
            policy=ToolPolicy(**policy_kwargs),
            parameters_schema=_extract_parameters_schema(func),
        )
        ToolCatalog.register(definition, func)
        return func

    return decorator
