import inspect
import json
import logging
import re
from typing import Any, Callable, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from stepchat.completion import FunctionDeclaration, FunctionTool

logger = logging.getLogger(__name__)

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    set: "array",
    dict: "object",
}


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Extract parameter descriptions from a Google or reST docstring."""
    doc = inspect.getdoc(func)
    if not doc:
        return {}

    descriptions: dict[str, str] = {}
    for match in re.finditer(r"^:param\s+(\w+):\s*(.+)$", doc, re.MULTILINE):
        descriptions[match.group(1)] = match.group(2).strip()
    if descriptions:
        return descriptions

    lines = doc.splitlines()
    try:
        start = next(
            i for i, line in enumerate(lines)
            if line.strip() in ("Args:", "Arguments:", "Parameters:")
        )
    except StopIteration:
        return {}

    current = None
    param_indent = None
    for line in lines[start + 1:]:
        if not line.strip():
            continue
        indent = len(line) - len(line.lstrip())
        if param_indent is None:
            param_indent = indent
        if indent < param_indent:
            break
        match = re.match(r"^(\w+)(?:\s*\([^)]*\))?:\s*(.*)$", line.strip())
        if indent == param_indent and match:
            current = match.group(1)
            descriptions[current] = match.group(2)
        elif current is not None:
            descriptions[current] += "\n" + line.strip()
    return descriptions


def _build_parameters_schema(func: Callable) -> tuple[dict, list[str]]:
    descriptions = _parse_param_descriptions(func)
    properties = {}
    required = []
    for name, param in inspect.signature(func).parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[name] = {
            "type": _JSON_TYPES.get(param.annotation, "string"),
            "description": descriptions.get(name, ""),
        }
        if param.default is inspect.Parameter.empty:
            required.append(name)
    schema = {
        "type": "object",
        "properties": properties,
        "required": required,
    }
    return schema, required


class Tool(BaseModel):
    """A function the model can call, with its JSON-schema input shape."""

    func: Callable = Field(exclude=True)
    name: str
    description: str = ""
    parameters_schema: dict[str, Any] = Field(default_factory=dict)

    model_config = {"arbitrary_types_allowed": True}

    def declaration(self) -> FunctionTool:
        return FunctionTool(function=FunctionDeclaration(
            name=self.name,
            description=self.description,
            parameters=self.parameters_schema,
        ))

    def model_dump(self, **kwargs):
        """Return the function-tool schema sent to the model."""
        return self.declaration().model_dump(**kwargs)

    async def invoke(self, arguments: str) -> str:
        """Call the function with JSON-encoded arguments.

        Coroutine functions are awaited. Non-string results are
        JSON-encoded.
        """
        params = json.loads(arguments) if arguments and arguments.strip() else {}
        if not isinstance(params, dict):
            raise TypeError(
                f"Arguments for {self.name} must be a JSON object, "
                f"got {type(params).__name__}"
            )
        result = self.func(**params)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, str):
            return result
        return json.dumps(result)


def tool(func: Callable | None = None, *, name: str | None = None,
         description: str | None = None):
    """Turn a function into a :class:`Tool`.

    Usable bare (``@tool``) or with overrides
    (``@tool(name="lookup", description="...")``).
    """
    def wrap(f: Callable) -> Tool:
        schema, _ = _build_parameters_schema(f)
        doc = inspect.getdoc(f) or ""
        return Tool(
            func=f,
            name=name or f.__name__,
            description=description if description is not None else doc.split("\n\n")[0],
            parameters_schema=schema,
        )

    if func is not None:
        return wrap(func)
    return wrap


@runtime_checkable
class ToolCatalog(Protocol):
    """Anything that can resolve a function name to a :class:`Tool`."""

    def resolve(self, name: str) -> Tool | None:
        ...


class StaticCatalog:
    """A fixed table of tools."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools = {t.name: t for t in tools or []}

    def resolve(self, name: str) -> Tool | None:
        return self._tools.get(name)


class FunctionRegistry:
    """The client's register of function callbacks.

    Tools passed in options are registered here. Names that were never
    registered fall through to ``fallback``, if one is given.
    """

    def __init__(self, fallback: ToolCatalog | None = None):
        self._registered: dict[str, Tool] = {}
        self.fallback = fallback

    def register(self, t: Tool) -> None:
        self._registered[t.name] = t

    def register_if_absent(self, t: Tool) -> None:
        self._registered.setdefault(t.name, t)

    def scoped(self, tools: list[Tool] | None = None) -> "FunctionRegistry":
        """A per-request register layered over this one.

        Tools registered on the scope override same-named tools here and
        are visible only through the scope.
        """
        scope = FunctionRegistry(fallback=self)
        for t in tools or []:
            scope.register(t)
        return scope

    def resolve(self, name: str) -> Tool | None:
        found = self._registered.get(name)
        if found is None and self.fallback is not None:
            found = self.fallback.resolve(name)
        if found is None:
            logger.debug(f"Function {name} is not registered")
        return found

    def __contains__(self, name: str) -> bool:
        return self.resolve(name) is not None
