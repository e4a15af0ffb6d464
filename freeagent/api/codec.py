"""Request and response body encoding.

The API speaks JSON and XML. Both decode to the same Python structure:
dicts keyed with underscores, lists, and Decimal/int/bool/str/None scalars.

XML documents follow the service's conventions::

    <freeagent>
      <bank-accounts type="array">
        <bank-account>
          <opening-balance type="decimal">0.0</opening-balance>
          <is-personal type="boolean">false</is-personal>
        </bank-account>
      </bank-accounts>
    </freeagent>
"""

import json
import xml.etree.ElementTree as ET
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from freeagent.dates import format_date, format_timestamp

MEDIA_TYPES = {
    "json": "application/json",
    "xml": "application/xml",
}

XML_ROOT = "freeagent"


class CodecError(ValueError):
    """Raised when a body cannot be encoded or decoded."""


def media_type(fmt: str) -> str:
    """Return the media type for a format name.

    Raises:
        ValueError: If the format is not json or xml.
    """
    try:
        return MEDIA_TYPES[fmt]
    except KeyError:
        raise ValueError(f"Unsupported format '{fmt}', expected one of: {', '.join(MEDIA_TYPES)}") from None


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return format_date(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dasherize(name: str) -> str:
    return name.replace("_", "-")


def underscore(name: str) -> str:
    return name.replace("-", "_")


def singularize(name: str) -> str:
    """Naive singular form used to name XML array children."""
    if name.endswith("ies"):
        return name[:-3] + "y"
    if name.endswith(("sses", "xes")):
        return name[:-2]
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


def _xml_element(name: str, value: Any) -> ET.Element:
    element = ET.Element(dasherize(name))

    if value is None:
        element.set("nil", "true")
    elif isinstance(value, dict):
        for key, child in value.items():
            element.append(_xml_element(key, child))
    elif isinstance(value, (list, tuple)):
        element.set("type", "array")
        child_name = singularize(name)
        for item in value:
            element.append(_xml_element(child_name, item))
    elif isinstance(value, bool):
        element.set("type", "boolean")
        element.text = "true" if value else "false"
    elif isinstance(value, int):
        element.set("type", "integer")
        element.text = str(value)
    elif isinstance(value, (Decimal, float)):
        element.set("type", "decimal")
        element.text = str(value)
    elif isinstance(value, datetime):
        element.set("type", "datetime")
        element.text = format_timestamp(value)
    elif isinstance(value, date):
        element.set("type", "date")
        element.text = format_date(value)
    else:
        element.text = str(value)

    return element


def _xml_scalar(element: ET.Element) -> Any:
    kind = element.get("type")
    text = element.text.strip() if element.text else ""

    if kind is None:
        return text if text else None
    if not text:
        return None

    try:
        if kind == "integer":
            return int(text)
        if kind in ("decimal", "float"):
            return Decimal(text)
        if kind == "boolean":
            return text.lower() == "true"
        if kind == "date":
            return date.fromisoformat(text)
        if kind == "datetime":
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except (ValueError, InvalidOperation) as e:
        raise CodecError(f"Invalid {kind} value '{text}' in <{element.tag}>") from e
    return text


def _xml_value(element: ET.Element) -> Any:
    if element.get("nil") == "true":
        return None
    if element.get("type") == "array":
        return [_xml_value(child) for child in element]

    children = list(element)
    if not children:
        return _xml_scalar(element)

    result: dict[str, Any] = {}
    for child in children:
        key = underscore(child.tag)
        value = _xml_value(child)
        if key in result:
            existing = result[key]
            if isinstance(existing, list) and child.get("type") != "array":
                existing.append(value)
            else:
                result[key] = [existing, value]
        else:
            result[key] = value
    return result


def encode(payload: dict[str, Any], fmt: str = "json") -> str:
    """Encode a request payload.

    Args:
        payload: Body to send, e.g. ``{"bank_account": {...}}``.
        fmt: ``json`` or ``xml``.

    Returns:
        Encoded body text.
    """
    if fmt == "json":
        return json.dumps(payload, default=_json_default)
    if fmt == "xml":
        root = _xml_element(XML_ROOT, payload)
        return '<?xml version="1.0" encoding="UTF-8"?>' + ET.tostring(root, encoding="unicode")
    raise ValueError(f"Unsupported format '{fmt}'")


def decode(text: str, fmt: str = "json") -> Any:
    """Decode a response body.

    Args:
        text: Response text.
        fmt: ``json`` or ``xml``.

    Returns:
        Decoded structure, or None for an empty body.

    Raises:
        CodecError: If the body is malformed.
    """
    if not text or not text.strip():
        return None

    if fmt == "json":
        try:
            return json.loads(text, parse_float=Decimal)
        except ValueError as e:
            raise CodecError(f"Malformed JSON response: {e}") from e

    if fmt == "xml":
        try:
            root = ET.fromstring(text.strip())
        except ET.ParseError as e:
            raise CodecError(f"Malformed XML response: {e}") from e
        if root.tag == XML_ROOT:
            value = _xml_value(root)
            return value if value is not None else {}
        return {underscore(root.tag): _xml_value(root)}

    raise ValueError(f"Unsupported format '{fmt}'")
