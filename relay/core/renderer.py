"""
Body Template Renderer

Turns a routing rule's body template into a concrete JSON payload by
substituting placeholders with event fields.

Placeholder grammar: a string value that is exactly ``{$.event.<field>}``.
Nothing else is substituted, not even the same pattern embedded in a
longer string.
"""
import json
import re
from typing import Any, Union

from relay.models.event import Event

JSONScalar = Union[str, int, float, bool, None]
JSONValue = Union[JSONScalar, list["JSONValue"], dict[str, "JSONValue"]]

# {$.event.<field>} where <field> is a single path segment
PLACEHOLDER_PATTERN = re.compile(r"\{\$\.event\.([^.]*)\}")


def resolve_placeholder(value: str, event: Event) -> Any:
    """
    Resolve a single string value.

    Returns the event field with its original type when ``value`` is a
    placeholder for a field present in ``event.data``. Unknown fields and
    non-placeholder strings are returned unchanged, so a misconfigured
    template shows up verbatim in the outbound payload.
    """
    match = PLACEHOLDER_PATTERN.fullmatch(value)
    if match is None:
        return value

    field = match.group(1)
    if field in event.data:
        return event.data[field]
    return value


def render(template: JSONValue, event: Event) -> JSONValue:
    """
    Render a template tree against an event.

    Objects keep their keys, arrays keep their order and length, strings
    go through the placeholder resolver, and every other scalar is passed
    through as is.

    Args:
        template: JSON-like tree from the routing rule
        event: Decoded event supplying field values

    Returns:
        New tree with placeholders substituted
    """
    if isinstance(template, str):
        return resolve_placeholder(template, event)
    if isinstance(template, dict):
        return {key: render(value, event) for key, value in template.items()}
    if isinstance(template, list):
        return [render(item, event) for item in template]
    return template


def render_body(template: JSONValue, event: Event) -> bytes:
    """
    Render a template and encode it as the request payload.

    A rule without a body template produces an empty JSON object.
    """
    if template is None:
        template = {}
    return json.dumps(render(template, event), ensure_ascii=False).encode("utf-8")
