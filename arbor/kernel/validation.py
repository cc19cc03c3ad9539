"""
Arbor Kernel — Node Form Validation

Checks a node about to be created or saved from the detail form:
  1. the name is not blank
  2. every required field of the node's type has a non-blank value
  3. link fields hold URLs, youtube fields hold YouTube URLs

Validation is advisory: it returns {key: message} and never raises. An empty
dict means the form is valid. Keys are "name", or the custom field id (the
definition id when the required field is missing entirely).
"""

from __future__ import annotations

import re

from pydantic import AnyUrl, TypeAdapter, ValidationError

from arbor.kernel.types import CustomField, NodeType

_URL_ADAPTER = TypeAdapter(AnyUrl)
_YOUTUBE_RE = re.compile(r"^(https?://)?(www\.)?(youtube\.com|youtu\.be)/.+")

NAME_KEY = "name"


def is_valid_url(value: str) -> bool:
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError:
        return False
    return True


def is_valid_youtube_url(value: str) -> bool:
    return bool(_YOUTUBE_RE.match(value))


def validate_node_name(name: str) -> bool:
    return len(name.strip()) > 0


def validate_required_fields(node_type: NodeType | None, fields: list[CustomField]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if node_type is None:
        return errors

    for definition in node_type.field_definitions:
        if not definition.required:
            continue
        match = next(
            (f for f in fields if f.definition_id == definition.id or f.name == definition.name),
            None,
        )
        if match is None or not match.value.strip():
            key = match.id if match is not None else definition.id
            errors[key] = f"{definition.name} is required"
    return errors


def validate_field_types(fields: list[CustomField]) -> dict[str, str]:
    errors: dict[str, str] = {}
    for f in fields:
        if not f.value:
            continue
        if f.type == "link" and not is_valid_url(f.value):
            errors[f.id] = "Enter a valid URL"
        elif f.type == "youtube" and not is_valid_youtube_url(f.value):
            errors[f.id] = "Enter a valid YouTube URL"
    return errors


def validate_node_form(name: str, node_type: NodeType | None, fields: list[CustomField]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not validate_node_name(name):
        errors[NAME_KEY] = "Node name is required"
    errors.update(validate_required_fields(node_type, fields))
    errors.update(validate_field_types(fields))
    return errors
