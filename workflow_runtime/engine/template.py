"""
Template resolver for {{ path }} placeholders.

Substitution only: a placeholder names a dotted path into the variable
store and is replaced by its value. Nothing inside the braces is ever
evaluated. Paths that do not resolve render as an empty string so that
prompt and message construction never fails on absent data.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from .paths import MISSING, get_path

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{(.+?)\}\}")
PATH_PATTERN = re.compile(r"^(\$\.)?[A-Za-z_][\w]*(\.\w+|\[\d+\])*$")


def stringify(value: Any) -> str:
    """Convert value to string for interpolation."""
    if value is None or value is MISSING:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def render(template: str, data: Mapping[str, Any]) -> str:
    """Replace every {{ path }} in a single pass."""

    def replacer(match: re.Match[str]) -> str:
        path = match.group(1).strip()
        if not PATH_PATTERN.match(path):
            logger.debug("Ignoring non-path placeholder: %s", path)
            return ""
        return stringify(get_path(data, path))

    return PLACEHOLDER_PATTERN.sub(replacer, template)


def render_value(value: Any, data: Mapping[str, Any]) -> Any:
    """Render strings nested anywhere inside dicts and lists."""
    if isinstance(value, str):
        return render(value, data)
    if isinstance(value, list):
        return [render_value(item, data) for item in value]
    if isinstance(value, dict):
        return {key: render_value(val, data) for key, val in value.items()}
    return value


def localize(value: Any, language: str, fallback: str = "en") -> str:
    """Pick the text for `language` from a {locale: text} mapping."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        if value.get(language):
            return value[language]
        if value.get(fallback):
            return value[fallback]
        return next((v for v in value.values() if v), "")
    return str(value)
