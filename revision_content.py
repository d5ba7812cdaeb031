"""
revision_content.py - Turns a revision's stored modifications into searchable text.

The modifications column maps a field name to its old/new values, e.g.
``{"raw": ["old text", "new text"]}``. Older rows hold it as structured data,
others as a YAML (or JSON) string.
"""

import logging
from typing import Any, Dict, List, Mapping

import yaml

from link_health import extract_links

logger = logging.getLogger(__name__)


def decode_modifications(raw: Any) -> Dict[str, Any]:
    """
    Decodes a modifications value into a mapping.

    Blank input, unparsable text and text that does not describe a mapping
    all decode to an empty dict. This function never raises.
    """
    if raw is None:
        return {}

    if isinstance(raw, Mapping):
        return dict(raw)

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    if not isinstance(raw, str) or not raw.strip():
        return {}

    try:
        decoded = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        logger.debug("Unparsable modifications treated as empty: %s", exc)
        return {}

    if not isinstance(decoded, Mapping):
        return {}
    return dict(decoded)


def _flatten(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        flat: List[str] = []
        for item in value:
            flat.extend(_flatten(item))
        return flat
    return [str(value)]


def flatten_modifications(modifications: Mapping[str, Any]) -> str:
    """Joins every (nested) value of the mapping into one space-separated blob."""
    parts: List[str] = []
    for value in modifications.values():
        parts.extend(_flatten(value))
    return " ".join(parts)


def revision_links(raw: Any) -> List[str]:
    """Returns the links found anywhere in a revision's modifications."""
    return extract_links(flatten_modifications(decode_modifications(raw)))
