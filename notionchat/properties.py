"""Schema-driven codec between Notion property payloads and editable form values.

Notion describes every database column with a typed descriptor and every page
property with a payload tagged by the same ``type``.  The functions here keep
the two sides aligned:

``decode``
    Turn a tagged API payload into the value a form edits (plain text, option
    name, ISO date string, bool, ...).

``encode``
    Rebuild the tagged API payload from a form value.  ``decode(encode(v))``
    returns ``v`` for every value in the kind's domain, and
    ``encode(decode(p))`` rebuilds ``p`` without its display-only fields
    (option colors, text annotations, an empty date ``end``).

``initial_value``
    Payload used when materialising a brand-new record.

``validate_for_submit``
    The one business rule enforced centrally: an outgoing record always has a
    non-empty title.

Read-only types (``created_time``, ``last_edited_time`` and Notion's other
computed columns) are never decoded or encoded.  Any other type without a
codec raises ``UnsupportedPropertyTypeError`` instead of being dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .errors import SchemaMismatchError, UnsupportedPropertyTypeError

DEFAULT_STATUS_LABEL = "Inbox"
DEFAULT_PLACEHOLDER_TITLE = "Untitled"
DEFAULT_TITLE_PROPERTY = "Name"


class PropertyKind(str, Enum):
    """Property types the codec can edit."""

    TITLE = "title"
    RICH_TEXT = "rich_text"
    SELECT = "select"
    STATUS = "status"
    MULTI_SELECT = "multi_select"
    DATE = "date"
    CHECKBOX = "checkbox"
    URL = "url"
    NUMBER = "number"


READ_ONLY_TYPES = frozenset(
    {
        "created_time",
        "last_edited_time",
        "created_by",
        "last_edited_by",
        "formula",
        "rollup",
        "unique_id",
    }
)

_FILTERABLE_KINDS = (PropertyKind.SELECT, PropertyKind.STATUS)


@dataclass(frozen=True)
class SelectOption:
    name: str
    id: Optional[str] = None
    color: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "SelectOption":
        return cls(
            name=str(payload.get("name") or ""),
            id=payload.get("id"),
            color=payload.get("color"),
        )

    def to_api(self) -> Dict[str, str]:
        out: Dict[str, str] = {}
        if self.id:
            out["id"] = self.id
        out["name"] = self.name
        return out


@dataclass(frozen=True)
class PropertyDescriptor:
    """One column of the database schema."""

    name: str
    type: str
    options: Tuple[SelectOption, ...] = ()
    id: Optional[str] = None

    @property
    def kind(self) -> PropertyKind:
        try:
            return PropertyKind(self.type)
        except ValueError:
            raise UnsupportedPropertyTypeError(self.type) from None

    @property
    def is_read_only(self) -> bool:
        return self.type in READ_ONLY_TYPES

    def option_named(self, name: Optional[str], *, case_insensitive: bool = False) -> Optional[SelectOption]:
        if not name:
            return None
        wanted = name.casefold() if case_insensitive else name
        for option in self.options:
            candidate = option.name.casefold() if case_insensitive else option.name
            if candidate == wanted:
                return option
        return None

    @classmethod
    def from_api(cls, name: str, payload: Mapping[str, Any]) -> "PropertyDescriptor":
        prop_type = str(payload.get("type") or "")
        options: Tuple[SelectOption, ...] = ()
        block = payload.get(prop_type)
        if isinstance(block, dict) and isinstance(block.get("options"), list):
            options = tuple(
                SelectOption.from_api(option)
                for option in block["options"]
                if isinstance(option, dict)
            )
        return cls(name=name, type=prop_type, options=options, id=payload.get("id"))


Schema = Dict[str, PropertyDescriptor]


def schema_from_api(database: Mapping[str, Any]) -> Schema:
    """Build a schema from a ``databases.retrieve`` response."""

    properties = database.get("properties")
    if not isinstance(properties, dict):
        raise SchemaMismatchError("Database response did not include a properties map")
    return {
        name: PropertyDescriptor.from_api(name, payload)
        for name, payload in properties.items()
        if isinstance(payload, dict)
    }


@dataclass
class Record:
    """A database page: tagged property payloads plus lifecycle flags."""

    properties: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    id: Optional[str] = None
    is_new: bool = False
    url: Optional[str] = None
    created_time: Optional[str] = None
    last_edited_time: Optional[str] = None

    @classmethod
    def draft(cls, properties: Optional[Mapping[str, Dict[str, Any]]] = None) -> "Record":
        return cls(properties=dict(properties or {}), is_new=True)

    @classmethod
    def from_page(cls, page: Mapping[str, Any]) -> "Record":
        properties = page.get("properties") or {}
        return cls(
            properties={key: value for key, value in properties.items() if isinstance(value, dict)},
            id=page.get("id"),
            is_new=False,
            url=page.get("url"),
            created_time=page.get("created_time"),
            last_edited_time=page.get("last_edited_time"),
        )


def _text_run(content: str) -> Dict[str, Any]:
    return {"type": "text", "text": {"content": content}}


def plain_text(runs: Any) -> str:
    """Concatenate the plain text of a rich-text run list."""

    if not isinstance(runs, list):
        return ""
    parts: List[str] = []
    for run in runs:
        if not isinstance(run, dict):
            continue
        text = run.get("plain_text")
        if text is None:
            inner = run.get("text")
            text = inner.get("content") if isinstance(inner, dict) else ""
        parts.append(text or "")
    return "".join(parts)


def _decode_text(inner: Any, descriptor: PropertyDescriptor) -> str:
    return plain_text(inner)


def _encode_text(value: Any, descriptor: PropertyDescriptor) -> List[Dict[str, Any]]:
    return [_text_run("" if value is None else str(value))]


def _initial_text() -> List[Dict[str, Any]]:
    return [_text_run("")]


def _decode_choice(inner: Any, descriptor: PropertyDescriptor) -> Optional[str]:
    if isinstance(inner, dict) and inner.get("name"):
        return str(inner["name"])
    return None


def _encode_choice(value: Any, descriptor: PropertyDescriptor) -> Optional[Dict[str, str]]:
    if value is None or value == "":
        return None
    name = str(value)
    option = descriptor.option_named(name)
    if option is not None:
        return option.to_api()
    return {"name": name}


def _decode_multi(inner: Any, descriptor: PropertyDescriptor) -> List[str]:
    if not isinstance(inner, list):
        return []
    return [str(item["name"]) for item in inner if isinstance(item, dict) and item.get("name")]


def _encode_multi(value: Any, descriptor: PropertyDescriptor) -> List[Dict[str, str]]:
    if not value:
        return []
    if isinstance(value, str):
        value = [value]
    encoded = []
    for name in value:
        option = descriptor.option_named(str(name))
        encoded.append(option.to_api() if option is not None else {"name": str(name)})
    return encoded


def _iso(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _decode_date(inner: Any, descriptor: PropertyDescriptor) -> Optional[str]:
    if not isinstance(inner, dict) or not inner.get("start"):
        return None
    start = str(inner["start"])
    end = inner.get("end")
    if end:
        return f"{start}/{end}"
    return start


def _encode_date(value: Any, descriptor: PropertyDescriptor) -> Optional[Dict[str, str]]:
    if value is None or value == "":
        return None
    text = _iso(value)
    # ISO 8601 interval notation carries the optional end.
    start, sep, end = text.partition("/")
    payload = {"start": start}
    if sep and end:
        payload["end"] = end
    return payload


def _decode_checkbox(inner: Any, descriptor: PropertyDescriptor) -> bool:
    return bool(inner)


def _encode_checkbox(value: Any, descriptor: PropertyDescriptor) -> bool:
    return bool(value)


def _decode_url(inner: Any, descriptor: PropertyDescriptor) -> str:
    return str(inner) if inner else ""


def _encode_url(value: Any, descriptor: PropertyDescriptor) -> Optional[str]:
    return str(value) if value else None


def _decode_number(inner: Any, descriptor: PropertyDescriptor) -> Optional[float]:
    if isinstance(inner, bool) or not isinstance(inner, (int, float)):
        return None
    return inner


def _encode_number(value: Any, descriptor: PropertyDescriptor) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        raise SchemaMismatchError(
            f"Property '{descriptor.name}' expects a number, got {value!r}"
        ) from None


@dataclass(frozen=True)
class _Codec:
    decode: Callable[[Any, PropertyDescriptor], Any]
    encode: Callable[[Any, PropertyDescriptor], Any]
    initial: Callable[[], Any]


_CODECS: Dict[PropertyKind, _Codec] = {
    PropertyKind.TITLE: _Codec(_decode_text, _encode_text, _initial_text),
    PropertyKind.RICH_TEXT: _Codec(_decode_text, _encode_text, _initial_text),
    PropertyKind.SELECT: _Codec(_decode_choice, _encode_choice, lambda: None),
    PropertyKind.STATUS: _Codec(_decode_choice, _encode_choice, lambda: None),
    PropertyKind.MULTI_SELECT: _Codec(_decode_multi, _encode_multi, list),
    PropertyKind.DATE: _Codec(_decode_date, _encode_date, lambda: None),
    PropertyKind.CHECKBOX: _Codec(_decode_checkbox, _encode_checkbox, lambda: False),
    PropertyKind.URL: _Codec(_decode_url, _encode_url, lambda: ""),
    PropertyKind.NUMBER: _Codec(_decode_number, _encode_number, lambda: None),
}


def _codec_for(descriptor: PropertyDescriptor) -> _Codec:
    if descriptor.is_read_only:
        raise UnsupportedPropertyTypeError(descriptor.type, context="editable property")
    codec = _CODECS.get(descriptor.kind)
    if codec is None:  # pragma: no cover - every PropertyKind has a codec
        raise UnsupportedPropertyTypeError(descriptor.type)
    return codec


def decode(api_value: Optional[Mapping[str, Any]], descriptor: PropertyDescriptor) -> Any:
    """Extract the editable representation from a tagged property payload."""

    codec = _codec_for(descriptor)
    if api_value is None:
        return codec.decode(None, descriptor)
    if not isinstance(api_value, Mapping):
        raise SchemaMismatchError(f"Property '{descriptor.name}' payload is not an object")
    tag = api_value.get("type", descriptor.type)
    if tag != descriptor.type:
        raise SchemaMismatchError(
            f"Property '{descriptor.name}' is tagged '{tag}' but the schema says '{descriptor.type}'"
        )
    return codec.decode(api_value.get(descriptor.type), descriptor)


def encode(value: Any, descriptor: PropertyDescriptor) -> Dict[str, Any]:
    """Rebuild the tagged API payload for ``value``."""

    codec = _codec_for(descriptor)
    return {"type": descriptor.type, descriptor.type: codec.encode(value, descriptor)}


def initial_value(
    descriptor: PropertyDescriptor, status_label: str = DEFAULT_STATUS_LABEL
) -> Optional[Dict[str, Any]]:
    """Payload for a property of a brand-new record, or ``None`` when there is none."""

    codec = _codec_for(descriptor)
    if descriptor.kind is PropertyKind.STATUS:
        option = descriptor.option_named(status_label)
        if option is None:
            return None
        return {"type": descriptor.type, descriptor.type: option.to_api()}
    return {"type": descriptor.type, descriptor.type: codec.initial()}


def editable_properties(schema: Mapping[str, PropertyDescriptor]) -> List[PropertyDescriptor]:
    return [descriptor for descriptor in schema.values() if not descriptor.is_read_only]


def initial_record(
    schema: Mapping[str, PropertyDescriptor], status_label: str = DEFAULT_STATUS_LABEL
) -> Record:
    properties: Dict[str, Dict[str, Any]] = {}
    for descriptor in editable_properties(schema):
        value = initial_value(descriptor, status_label)
        if value is not None:
            properties[descriptor.name] = value
    return Record.draft(properties)


def decode_record(record: Record, schema: Mapping[str, PropertyDescriptor]) -> Dict[str, Any]:
    """Form values for every editable property of ``record``."""

    return {
        descriptor.name: decode(record.properties.get(descriptor.name), descriptor)
        for descriptor in editable_properties(schema)
    }


def encode_form(values: Mapping[str, Any], schema: Mapping[str, PropertyDescriptor]) -> Dict[str, Dict[str, Any]]:
    """Encode submitted form values; a status without a value is left out."""

    properties: Dict[str, Dict[str, Any]] = {}
    for descriptor in editable_properties(schema):
        if descriptor.name not in values:
            continue
        payload = encode(values[descriptor.name], descriptor)
        if descriptor.kind is PropertyKind.STATUS and payload[descriptor.type] is None:
            continue
        properties[descriptor.name] = payload
    return properties


def with_initial_status(
    properties: Mapping[str, Dict[str, Any]],
    schema: Mapping[str, PropertyDescriptor],
    status_label: str = DEFAULT_STATUS_LABEL,
) -> Dict[str, Dict[str, Any]]:
    """Fill status properties missing from ``properties`` with the initial label."""

    filled = dict(properties)
    for descriptor in schema.values():
        if descriptor.type != PropertyKind.STATUS.value or descriptor.name in filled:
            continue
        value = initial_value(descriptor, status_label)
        if value is not None:
            filled[descriptor.name] = value
    return filled


def find_title_property(
    schema: Mapping[str, PropertyDescriptor], fallback: str = DEFAULT_TITLE_PROPERTY
) -> str:
    for descriptor in schema.values():
        if descriptor.type == PropertyKind.TITLE.value:
            return descriptor.name
    return fallback


def find_date_property(schema: Mapping[str, PropertyDescriptor]) -> PropertyDescriptor:
    for descriptor in schema.values():
        if descriptor.type == PropertyKind.DATE.value:
            return descriptor
    raise SchemaMismatchError("No date property found in database")


def find_status_property(schema: Mapping[str, PropertyDescriptor]) -> PropertyDescriptor:
    for descriptor in schema.values():
        if descriptor.name.lower() in {"status", "state"}:
            return descriptor
    raise SchemaMismatchError("No status/state property found in database")


def validate_for_submit(
    record: Record,
    schema: Mapping[str, PropertyDescriptor],
    *,
    placeholder: str = DEFAULT_PLACEHOLDER_TITLE,
    fallback_title: str = DEFAULT_TITLE_PROPERTY,
) -> Record:
    """Return a copy of ``record`` whose title property is guaranteed non-empty."""

    name = find_title_property(schema, fallback=fallback_title)
    descriptor = schema.get(name) or PropertyDescriptor(name=name, type=PropertyKind.TITLE.value)
    properties = dict(record.properties)
    current = properties.get(name)
    text = decode(current, descriptor) if current is not None else ""
    if not text.strip():
        properties[name] = encode(placeholder, descriptor)
    return replace(record, properties=properties)


def equality_filter(descriptor: PropertyDescriptor, value: str) -> Dict[str, Any]:
    """Single-property equality filter for a status or select column."""

    if descriptor.type not in {kind.value for kind in _FILTERABLE_KINDS}:
        raise UnsupportedPropertyTypeError(descriptor.type, context="status property")
    option = descriptor.option_named(value, case_insensitive=True)
    target = option.name if option is not None else value
    return {"property": descriptor.name, descriptor.type: {"equals": target}}


def date_range_filter(property_name: str, start: Any, end: Any) -> Dict[str, Any]:
    return {
        "and": [
            {"property": property_name, "date": {"on_or_after": _iso(start)}},
            {"property": property_name, "date": {"on_or_before": _iso(end)}},
        ]
    }


def plain_title(record: Record, placeholder: str = DEFAULT_PLACEHOLDER_TITLE) -> str:
    """Display title of ``record``: the text of its title-tagged property."""

    for payload in record.properties.values():
        if isinstance(payload, dict) and payload.get("type") == PropertyKind.TITLE.value:
            text = plain_text(payload.get("title"))
            if text.strip():
                return text
    return placeholder


__all__ = [
    "DEFAULT_PLACEHOLDER_TITLE",
    "DEFAULT_STATUS_LABEL",
    "DEFAULT_TITLE_PROPERTY",
    "PropertyDescriptor",
    "PropertyKind",
    "READ_ONLY_TYPES",
    "Record",
    "Schema",
    "SelectOption",
    "date_range_filter",
    "decode",
    "decode_record",
    "editable_properties",
    "encode",
    "encode_form",
    "equality_filter",
    "find_date_property",
    "find_status_property",
    "find_title_property",
    "initial_record",
    "initial_value",
    "plain_text",
    "plain_title",
    "schema_from_api",
    "validate_for_submit",
    "with_initial_status",
]
