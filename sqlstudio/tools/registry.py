"""
Tool catalog and per-request tool registry.

ToolCatalog is the process-wide list of tools declared with @tool.
ToolRegistry is what one agent run sees: descriptors whose resolvers are
bound to that run's ToolContext. Resolution never raises; failures come
back as {"error": "..."} payloads the model can react to.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import yaml
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError, validate_call

from sqlstudio.tools.base import (
    CONTEXT_PARAMETERS,
    ToolContext,
    ToolDefinition,
    ToolDescriptor,
    ToolResolver,
)

logger = logging.getLogger(__name__)


class ToolArgumentError(ValueError):
    """Arguments missing or of the wrong type."""


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "__root__")
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


class ToolCatalog:
    _definitions: dict[str, ToolDefinition] = {}
    _handlers: dict[str, Callable[..., Any]] = {}

    @classmethod
    def register(cls, definition: ToolDefinition, handler: Callable[..., Any]) -> None:
        cls._definitions[definition.name] = definition
        cls._handlers[definition.name] = handler
        logger.debug(f"Registered tool: {definition.name}")

    @classmethod
    def get_definition(cls, name: str) -> ToolDefinition | None:
        return cls._definitions.get(name)

    @classmethod
    def get_handler(cls, name: str) -> Callable[..., Any] | None:
        return cls._handlers.get(name)

    @classmethod
    def list_definitions(cls) -> list[ToolDefinition]:
        return list(cls._definitions.values())

    @classmethod
    def load_policy_config(cls, path: str | Path) -> None:
        """
        Apply enable/disable settings from YAML.

        Accepts either a list (`tools: [{name: x, enabled: false}]`) or a
        mapping (`tools: {x: {enabled: false}}`).
        """
        policy_path = Path(path)
        if not policy_path.exists():
            logger.debug(f"Tool policy file not found: {policy_path}")
            return

        data = yaml.safe_load(policy_path.read_text(encoding="utf-8")) or {}
        entries = data.get("tools", [])
        if isinstance(entries, dict):
            entries = [{"name": name, **(values or {})} for name, values in entries.items()]

        for entry in entries:
            name = entry.get("name")
            definition = cls._definitions.get(name)
            if definition is None:
                logger.warning(f"Policy references unknown tool: {name}")
                continue
            policy = definition.policy.model_copy(
                update={
                    key: entry[key]
                    for key in ("enabled", "max_execution_time_seconds")
                    if key in entry
                }
            )
            cls._definitions[name] = definition.model_copy(update={"policy": policy})
            logger.info(f"Loaded policy for tool: {name}", extra={"enabled": policy.enabled})

    @classmethod
    def bind(cls, ctx: ToolContext, names: Iterable[str] | None = None) -> ToolRegistry:
        """Build a registry of enabled tools bound to ctx."""
        wanted = set(names) if names is not None else None
        registry = ToolRegistry()
        for definition in cls._definitions.values():
            if not definition.policy.enabled:
                continue
            if wanted is not None and definition.name not in wanted:
                continue
            registry.register(
                ToolDescriptor(
                    name=definition.name,
                    description=definition.description,
                    input_schema=definition.parameters_schema,
                    resolver=bind_handler(definition, cls._handlers[definition.name], ctx),
                )
            )
        return registry


def bind_handler(
    definition: ToolDefinition, handler: Callable[..., Any], ctx: ToolContext
) -> ToolResolver:
    """Wrap a handler so it can be called with parsed model arguments only."""
    validated = validate_call(handler)
    schema = definition.parameters_schema
    known = set(schema.get("properties", {}))
    required = list(schema.get("required", []))
    takes_ctx = any(param in inspect.signature(handler).parameters for param in CONTEXT_PARAMETERS)
    timeout = definition.policy.max_execution_time_seconds

    async def resolver(arguments: dict[str, Any]) -> dict[str, Any]:
        missing = [name for name in required if arguments.get(name) in (None, "")]
        if missing:
            raise ToolArgumentError(f"Missing required argument(s): {', '.join(missing)}")

        unexpected = set(arguments) - known
        if unexpected:
            logger.warning(
                f"Ignoring unexpected arguments for {definition.name}: {sorted(unexpected)}"
            )
        kwargs = {key: value for key, value in arguments.items() if key in known}
        if takes_ctx:
            kwargs["ctx"] = ctx

        try:
            result = validated(**kwargs)
        except ValidationError as exc:
            raise ToolArgumentError(
                f"Invalid arguments for {definition.name}: {format_validation_error(exc)}"
            ) from exc
        if inspect.isawaitable(result):
            try:
                async with asyncio.timeout(timeout):
                    result = await result
            except TimeoutError:
                raise TimeoutError(f"Tool '{definition.name}' timed out after {timeout}s") from None
        return result

    return resolver


class ToolRegistry:
    """Tools available to one agent run."""

    def __init__(self, descriptors: Iterable[ToolDescriptor] = ()) -> None:
        self._descriptors: dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._descriptors:
            raise ValueError(f"Tool already registered: {descriptor.name}")
        self._descriptors[descriptor.name] = descriptor

    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._descriptors.values())

    @property
    def names(self) -> list[str]:
        return list(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    async def resolve(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Run a tool. Always returns a JSON-safe dict; failures are {"error": ...}."""
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            logger.warning(f"Model requested unknown tool: {name}")
            return {"error": f"Unknown tool: {name}"}

        start = time.perf_counter()
        try:
            payload = await descriptor.resolver(arguments)
        except ToolArgumentError as exc:
            logger.warning(f"Tool {name} rejected arguments: {exc}", extra={"tool": name})
            return {"error": str(exc)}
        except Exception as exc:
            logger.exception(f"Tool execution failed: {name} - {exc}", extra={"tool": name})
            return {"error": str(exc) or exc.__class__.__name__}

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Tool {name} finished in {elapsed_ms:.1f}ms",
            extra={"tool": name, "elapsed_ms": elapsed_ms},
        )
        if not isinstance(payload, dict):
            payload = {"result": payload}
        return jsonable_encoder(payload)
