"""
Conversion between Kubernetes client models and plain API dicts.

Models are rebuilt from their generated `openapi_types` / `attribute_map`
tables, so reading API-form data does not depend on how a given client
release parses REST responses.
"""

import re
from datetime import date, datetime
from typing import Any

from kubernetes import client

_api_client = client.ApiClient()

_LIST_TYPE = re.compile(r"^list\[(.*)\]$")
_DICT_TYPE = re.compile(r"^dict\(([^,]*), (.*)\)$")


def to_dict(obj: Any) -> Any:
    """Serialize a model to its API form (camelCase keys, None fields dropped)."""
    return _api_client.sanitize_for_serialization(obj)


def from_dict(data: Any, klass: str) -> Any:
    """
    Deserialize API-form data into a model.

    Args:
        data: Dict/list in API form
        klass: Model type name, e.g. "V1Container" or "list[V1Volume]"

    Raises:
        ValueError: If data does not have the shape klass describes, or a
            required model field is missing
    """
    if data is None:
        return None

    list_match = _LIST_TYPE.match(klass)
    if list_match:
        if not isinstance(data, list):
            raise ValueError(f"expected a list for {klass}, got {type(data).__name__}")
        return [from_dict(item, list_match.group(1)) for item in data]

    dict_match = _DICT_TYPE.match(klass)
    if dict_match:
        if not isinstance(data, dict):
            raise ValueError(f"expected a map for {klass}, got {type(data).__name__}")
        return {key: from_dict(value, dict_match.group(2)) for key, value in data.items()}

    if klass == "object":
        return data
    if klass in ("str", "int", "float", "bool"):
        return _primitive(data, klass)
    if klass in ("date", "datetime"):
        return _timestamp(data, klass)

    return _model(data, klass)


def _primitive(data: Any, klass: str) -> Any:
    if isinstance(data, (dict, list)):
        raise ValueError(f"expected {klass}, got {type(data).__name__}")

    if klass == "bool":
        if not isinstance(data, bool):
            raise ValueError(f"expected bool, got {data!r}")
        return data
    if klass == "str":
        if isinstance(data, bool):
            return "true" if data else "false"
        return str(data)
    if isinstance(data, bool):
        raise ValueError(f"expected {klass}, got {data!r}")
    return int(data) if klass == "int" else float(data)


def _timestamp(data: Any, klass: str) -> Any:
    if isinstance(data, (date, datetime)):
        return data
    if not isinstance(data, str):
        raise ValueError(f"expected {klass} string, got {data!r}")
    parsed = datetime.fromisoformat(data.replace("Z", "+00:00"))
    return parsed.date() if klass == "date" else parsed


def _model(data: Any, klass: str) -> Any:
    model = getattr(client, klass)
    if not isinstance(data, dict):
        raise ValueError(f"expected an object for {klass}, got {type(data).__name__}")

    kwargs = {}
    for attr, attr_type in model.openapi_types.items():
        key = model.attribute_map[attr]
        if key in data:
            kwargs[attr] = from_dict(data[key], attr_type)
    return model(**kwargs)
