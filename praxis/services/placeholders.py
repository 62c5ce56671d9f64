"""Placeholder handling for agent templates and the copilot editor.

Agent templates mark client-provided values as ``{{field_name}}``. The editor
also recognises the looser conventions lawyers paste in from Word documents:
``[Nombre]``, ``____`` and ``<ciudad>``.
"""
import re
import logging
from typing import Dict, Iterable, List, Mapping

logger = logging.getLogger(__name__)

TEMPLATE_PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")

EDITOR_PATTERNS = (
    ("braces", re.compile(r"\{\{[^}]+\}\}")),
    ("brackets", re.compile(r"\[[^\[\]\n]+\]")),
    ("underscores", re.compile(r"_{3,}")),
    ("angles", re.compile(r"<([^<>\n]+)>")),
)

HTML_TAGS = frozenset({
    "a", "b", "blockquote", "br", "code", "div", "em", "h1", "h2", "h3", "h4",
    "h5", "h6", "hr", "i", "img", "li", "ol", "p", "pre", "s", "span", "strong",
    "sub", "sup", "table", "tbody", "td", "th", "thead", "tr", "u", "ul",
})

def _is_html_tag(inner: str) -> bool:
    name = inner.strip().lstrip("/").rstrip("/").split(" ")[0].lower()
    return name in HTML_TAGS

def humanize_field(field: str) -> str:
    """``nombre_cliente`` -> ``Nombre Cliente``."""
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), field.replace("_", " "))

def extract_placeholders(template: str) -> List[Dict[str, object]]:
    """Return one entry per unique ``{{field}}`` in order of first appearance."""
    placeholders = []
    seen = set()

    for match in TEMPLATE_PLACEHOLDER.finditer(template or ""):
        field = match.group(1).strip()
        if not field or field in seen:
            continue
        seen.add(field)
        placeholders.append({
            "field": field,
            "label": humanize_field(field),
            "type": "text",
            "required": True,
            "description": f"Ingrese {field.lower().replace('_', ' ')}"
        })

    logger.debug(f"Found {len(placeholders)} unique placeholders")
    return placeholders

def placeholder_names(template: str) -> List[str]:
    return [p["field"] for p in extract_placeholders(template)]

def detect_placeholders(text: str) -> List[Dict[str, object]]:
    """Scan free text for anything that looks like a fill-in field.

    Angle-bracket tokens that are HTML tags (``<p>``, ``<br/>``, ``</b>``)
    are ignored so the scan can run on the editor's HTML content.
    """
    found = []
    taken = []

    for kind, pattern in EDITOR_PATTERNS:
        for match in pattern.finditer(text or ""):
            start, end = match.span()
            if kind == "angles" and _is_html_tag(match.group(1)):
                continue
            # overlapping matches keep the earlier pattern, e.g. [____] stays "brackets"
            if any(start < t_end and end > t_start for t_start, t_end in taken):
                continue
            taken.append((start, end))
            found.append({"text": match.group(0), "kind": kind, "start": start, "end": end})

    return sorted(found, key=lambda item: item["start"])

def fill_template(template: str, values: Mapping[str, object]) -> str:
    """Substitute ``{{name}}`` tokens. Unknown names are left untouched."""
    def replace(match):
        name = match.group(1).strip()
        if name in values and values[name] is not None:
            return str(values[name])
        return match.group(0)

    return TEMPLATE_PLACEHOLDER.sub(replace, template or "")

def missing_placeholders(placeholders: Iterable[str], blocks: Iterable[Iterable[str]]) -> List[str]:
    """Placeholders that no conversation block asks for."""
    covered = {name for block in blocks for name in block}
    return [name for name in placeholders if name not in covered]
