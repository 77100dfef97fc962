"""Tool parameter schema adaptation per backend.

Some backends reject or mishandle parts of JSON Schema that the messages
API accepts. :func:`adapt_schema` derives a backend-specific copy of a tool's
``input_schema``; the original tree is never modified.
"""

from __future__ import annotations

from typing import Any

# Backends without a first-class ``format: "uri"`` string type.
URI_FORMAT_UNSUPPORTED = frozenset({"openai", "google", "gemini"})

# Backends that validate tool schemas in strict mode: every property required,
# no additional properties.
STRICT_BACKENDS = frozenset({"openai"})


def adapt_schema(backend: str, schema: Any) -> Any:
    """Return *schema* rewritten for *backend*.

    Anything that is not an object schema with a ``properties`` map is
    returned unchanged, so primitives, boolean schemas and malformed nodes
    pass straight through.
    """
    if not isinstance(schema, dict) or schema.get("type") != "object":
        return schema
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return schema

    adapted: dict[str, Any] = {}
    for key, prop in properties.items():
        adapted[key] = _adapt_property(backend, prop)

    result: dict[str, Any] = {**schema, "properties": adapted}
    if backend in STRICT_BACKENDS:
        result["required"] = list(properties)
        result["additionalProperties"] = False
    return result


def _adapt_property(backend: str, prop: Any) -> Any:
    if not isinstance(prop, dict):
        # true/false schemas
        return prop

    if backend in URI_FORMAT_UNSUPPORTED and prop.get("format") == "uri":
        prop = {k: v for k, v in prop.items() if k != "format"}

    if prop.get("type") == "object":
        return adapt_schema(backend, prop)

    items = prop.get("items")
    if prop.get("type") == "array" and isinstance(items, dict) and items.get("type") == "object":
        return {**prop, "items": adapt_schema(backend, items)}

    return prop
