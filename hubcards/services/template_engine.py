"""Placeholder substitution for action URLs, query strings and bodies.

Templates reference values with ``{{namespace.key}}`` (for example
``{{object.email}}``) or a bare scalar such as ``{{objectId}}``. A template is
tokenized once into literal text and :class:`Placeholder` segments, and the
placeholders are then resolved against a :class:`TemplateContext`.

Placeholders that cannot be resolved are left in the output verbatim and
reported back to the caller, so they can be logged or rejected.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union
from urllib.parse import quote, urlencode

OPEN = "{{"
CLOSE = "}}"

METHODS_WITH_BODY = {"POST", "PUT", "PATCH"}
SUPPORTED_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE"}

# HubSpot objectTypeId -> CRM object type used in /crm/v3/objects/{type}
HUBSPOT_OBJECT_TYPES: Dict[str, str] = {
    "0-1": "contacts",
    "0-2": "companies",
    "0-3": "deals",
    "0-5": "tickets",
}


def map_object_type(object_type_id: Optional[str]) -> Optional[str]:
    """Map a HubSpot object type id (or plural name) to its CRM object type."""
    if not object_type_id:
        return None
    value = str(object_type_id).strip()
    if value in HUBSPOT_OBJECT_TYPES:
        return HUBSPOT_OBJECT_TYPES[value]
    if value.lower() in HUBSPOT_OBJECT_TYPES.values():
        return value.lower()
    return None


@dataclass(frozen=True)
class Placeholder:
    raw: str
    namespace: Optional[str]
    key: str

    @property
    def name(self) -> str:
        return f"{self.namespace}.{self.key}" if self.namespace else self.key


Segment = Union[str, Placeholder]


def tokenize(template: str) -> List[Segment]:
    """Split *template* into literal strings and placeholders in one pass."""
    segments: List[Segment] = []
    literal: List[str] = []
    pos = 0
    length = len(template)

    while pos < length:
        start = template.find(OPEN, pos)
        if start == -1:
            literal.append(template[pos:])
            break
        end = template.find(CLOSE, start + len(OPEN))
        if end == -1:
            # Unterminated, the rest is plain text
            literal.append(template[pos:])
            break

        inner = template[start + len(OPEN):end]
        # "{{a {{b}}": only the innermost braces open the placeholder
        nested = inner.rfind(OPEN)
        if nested != -1:
            literal.append(template[pos:start + len(OPEN) + nested])
            pos = start + len(OPEN) + nested
            continue

        inner = inner.strip()
        literal.append(template[pos:start])
        raw = template[start:end + len(CLOSE)]
        if inner:
            if literal:
                segments.append("".join(literal))
                literal = []
            namespace, _, key = inner.partition(".")
            if key:
                segments.append(Placeholder(raw=raw, namespace=namespace, key=key))
            else:
                segments.append(Placeholder(raw=raw, namespace=None, key=namespace))
        else:
            literal.append(raw)
        pos = end + len(CLOSE)

    if literal:
        segments.append("".join(literal))
    return segments


def placeholders(template: Optional[str]) -> List[Placeholder]:
    if not template:
        return []
    return [segment for segment in tokenize(template) if isinstance(segment, Placeholder)]


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


@dataclass
class TemplateContext:
    """Values available to templates.

    ``namespaces`` maps a namespace (``object``, ``contact``...) to its
    attributes. A namespace listed in ``unavailable`` was requested but could
    not be loaded; its placeholders render as empty strings.
    """

    scalars: Dict[str, Any] = field(default_factory=dict)
    namespaces: Dict[str, Mapping[str, Any]] = field(default_factory=dict)
    unavailable: Set[str] = field(default_factory=set)

    def lookup(self, placeholder: Placeholder) -> Tuple[bool, str]:
        if placeholder.namespace is None:
            if placeholder.key in self.scalars:
                return True, _stringify(self.scalars[placeholder.key])
            return False, ""

        if placeholder.namespace in self.unavailable:
            return True, ""
        attributes = self.namespaces.get(placeholder.namespace)
        if attributes is not None and placeholder.key in attributes:
            return True, _stringify(attributes[placeholder.key])
        # Flat keys that contain a dot, e.g. {"order.id": ...}
        if placeholder.name in self.scalars:
            return True, _stringify(self.scalars[placeholder.name])
        return False, ""


@dataclass(frozen=True)
class Rendered:
    text: str
    unresolved: Tuple[Placeholder, ...] = ()


def render(
    template: Optional[str],
    context: TemplateContext,
    escape: Optional[Callable[[str], str]] = None,
) -> Rendered:
    """Substitute every resolvable placeholder in *template*.

    *escape* is applied to substituted values only, never to the literal text.
    """
    if not template:
        return Rendered(text="")

    out: List[str] = []
    unresolved: List[Placeholder] = []
    for segment in tokenize(template):
        if isinstance(segment, str):
            out.append(segment)
            continue
        found, value = context.lookup(segment)
        if found:
            out.append(escape(value) if escape else value)
        else:
            out.append(segment.raw)
            unresolved.append(segment)
    return Rendered(text="".join(out), unresolved=tuple(unresolved))


def escape_url(value: str) -> str:
    return quote(value, safe="")


def escape_json(value: str) -> str:
    """Escape *value* for use inside a JSON string literal."""
    return json.dumps(value)[1:-1]


@dataclass(frozen=True)
class RenderedRequest:
    method: str
    url: str
    body: Optional[str]
    unresolved: Tuple[Placeholder, ...] = ()

    @property
    def unresolved_names(self) -> List[str]:
        return sorted({p.name for p in self.unresolved})


def render_request(
    method: str,
    url: str,
    context: TemplateContext,
    body_template: Optional[str] = None,
    query_params: Iterable[Tuple[Optional[str], Optional[str]]] = (),
) -> RenderedRequest:
    """Render the URL plus either the query string (GET) or the body (everything else)."""
    method = method.upper()
    rendered_url = render(url, context, escape=escape_url)
    unresolved = list(rendered_url.unresolved)
    final_url = rendered_url.text
    body: Optional[str] = None

    if method == "GET":
        pairs = []
        for key, value in query_params:
            rendered_value = render(value, context)
            unresolved.extend(rendered_value.unresolved)
            if key and rendered_value.text:
                pairs.append((key, rendered_value.text))
        if pairs:
            separator = "&" if "?" in final_url else "?"
            final_url = f"{final_url}{separator}{urlencode(pairs)}"
    else:
        rendered_body = render(body_template, context, escape=escape_json)
        unresolved.extend(rendered_body.unresolved)
        body = rendered_body.text

    return RenderedRequest(method=method, url=final_url, body=body, unresolved=tuple(unresolved))


def build_action_context(
    object_id: Optional[str],
    object_type_id: Optional[str],
    tenant_id: Optional[str],
    action_id: Optional[str],
    hubspot_object: Optional[Mapping[str, Any]] = None,
    object_unavailable: bool = False,
) -> TemplateContext:
    """Context for button actions.

    Object properties are exposed as ``object.*`` and, for templates written
    against the first version of this feature, as ``contact.*``.
    """
    scalars = {
        "objectId": object_id or "",
        "objectTypeId": object_type_id or "",
        "tenantId": tenant_id or "",
        "actionId": action_id or "",
        "hub_id": tenant_id or "",
    }
    namespaces: Dict[str, Mapping[str, Any]] = {
        "dynamicData": {
            "objectId": scalars["objectId"],
            "objectTypeId": scalars["objectTypeId"],
            "hub_id": scalars["tenantId"],
            "actionId": scalars["actionId"],
        },
    }
    unavailable: Set[str] = set()

    if hubspot_object is not None:
        attributes = dict(hubspot_object.get("properties") or {})
        if hubspot_object.get("id") is not None:
            attributes["id"] = hubspot_object["id"]
        namespaces["object"] = attributes
        namespaces["contact"] = attributes
    elif object_unavailable:
        unavailable = {"object", "contact"}

    return TemplateContext(scalars=scalars, namespaces=namespaces, unavailable=unavailable)
