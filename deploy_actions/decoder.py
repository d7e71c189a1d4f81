"""Decode tagged configuration records into Actions."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from deploy_actions.errors import ActionDecodeError, UnknownActionTypeError
from deploy_actions.variants import VARIANTS, Action
from utils.file_utils import load_structured
from utils.settings_store import deep_log

ALLOWED_TYPES = frozenset(VARIANTS)

# Keys consumed by the envelope; everything else belongs to the variant.
_ENVELOPE_KEYS = {"type", "name", "follow"}


def normalize_records(payload: Any) -> list[dict]:
    """Return the list of action records from a parsed config payload."""
    if isinstance(payload, list):
        return [record for record in payload if isinstance(record, dict)]
    if isinstance(payload, dict):
        records = payload.get("actions")
        if isinstance(records, list):
            return [record for record in records if isinstance(record, dict)]
    return []


def decode_action(record: Any) -> Action:
    """Decode a single ``{type, name, follow, ...}`` record.

    Raises:
        UnknownActionTypeError: ``type`` is not one of copy, move, run.
        ActionDecodeError: the record is not a mapping or the variant fields
            fail validation (for example a missing ``from``).
    """
    if not isinstance(record, dict):
        raise ActionDecodeError(f"action record must be a mapping, got {type(record).__name__}")

    action_type = record.get("type")
    model = VARIANTS.get(action_type) if isinstance(action_type, str) else None
    if model is None:
        raise UnknownActionTypeError(action_type)

    name = record.get("name")
    name = str(name) if name else action_type
    follow = record.get("follow")
    follow = "" if follow is None else str(follow)

    fields = {key: value for key, value in record.items() if key not in _ENVELOPE_KEYS}
    try:
        variant = model.model_validate(fields)
    except ValidationError as exc:
        raise ActionDecodeError(f"invalid {action_type} action '{name}': {exc}") from exc

    deep_log(f"[DEEP][DECODER] decoded name={name} type={action_type} fields={fields}")
    return Action(name=name, variant=variant, follow=follow)


def decode_actions(payload: Any) -> list[Action]:
    """Decode every record found in a parsed config payload."""
    return [decode_action(record) for record in normalize_records(payload)]


def load_actions(path: str | Path) -> list[Action]:
    """Read a YAML or JSON config file and decode its actions."""
    try:
        payload = load_structured(path)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ActionDecodeError(f"could not parse {path}: {exc}") from exc
    return decode_actions(payload)
