"""
Message catalog: locale-specific text for recommendations and the UI.

Rules never produce text. They hand a ``(type, params)`` pair to a
renderer, and the renderer fills in message, suggestion, impact and
implementation steps from the locale's templates. Templates live in
``locales/<language>.yaml`` and use ``str.format`` placeholders
(``{table_name}``, ``{rows}``, ``{type}``).

Usage:
    catalog = MessageCatalog("id")
    text = catalog.render(RecommendationType.TABLE_SCAN, {"table_name": "orders"})
    catalog.text("ui.headers.plan")

A key missing from the selected locale falls back to English; a key
missing from English falls back to the key itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Protocol

import yaml

from queryadvisor.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).parent / "locales"
DEFAULT_LANGUAGE = "en"


@dataclass(frozen=True)
class RenderedText:
    """Text produced for one recommendation."""

    message: str
    suggestion: str
    impact: str
    implementation: tuple[str, ...]


class RecommendationRenderer(Protocol):
    """Anything that can turn ``(type, params)`` into display text."""

    def render(self, rec_type: str, params: Mapping[str, Any]) -> RenderedText:
        ...


class _KeepMissing(dict):
    """format_map helper: unknown placeholders are left as-is."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def available_languages() -> list[str]:
    """Languages with a bundled template file."""
    return sorted(path.stem for path in LOCALES_DIR.glob("*.yaml"))


@lru_cache(maxsize=None)
def _load_locale(language: str) -> dict[str, Any]:
    path = LOCALES_DIR / f"{language}.yaml"
    if not path.exists():
        raise ConfigurationError(
            f"Language '{language}' not supported "
            f"(available: {', '.join(available_languages())})",
            config_key="language",
        )
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _lookup(tree: Mapping[str, Any], dotted_key: str) -> Any:
    node: Any = tree
    for part in dotted_key.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


class MessageCatalog:
    """
    Template-backed renderer for one language.

    Instances are cheap; the parsed YAML is cached per language.
    """

    def __init__(self, language: str = DEFAULT_LANGUAGE) -> None:
        self.language = language
        self._templates = _load_locale(language)
        self._fallback = (
            self._templates if language == DEFAULT_LANGUAGE
            else _load_locale(DEFAULT_LANGUAGE)
        )

    def _get(self, dotted_key: str) -> Any:
        value = _lookup(self._templates, dotted_key)
        if value is None and self._fallback is not self._templates:
            logger.debug("Key %s missing for %s, using %s", dotted_key, self.language, DEFAULT_LANGUAGE)
            value = _lookup(self._fallback, dotted_key)
        return value

    def text(self, dotted_key: str, **params: Any) -> str:
        """Look up a UI string, substituting ``params``."""
        value = self._get(dotted_key)
        if value is None:
            return dotted_key
        return str(value).format_map(_KeepMissing(params))

    def lines(self, dotted_key: str, **params: Any) -> list[str]:
        """Look up a list of UI strings (e.g. troubleshooting steps)."""
        value = self._get(dotted_key)
        if not isinstance(value, list):
            return []
        return [str(line).format_map(_KeepMissing(params)) for line in value]

    def render(self, rec_type: str, params: Mapping[str, Any]) -> RenderedText:
        """Render the text of one recommendation."""
        key = f"recommendations.{getattr(rec_type, 'value', rec_type)}"
        fmt = _KeepMissing(params)

        def field(name: str) -> str:
            value = self._get(f"{key}.{name}")
            return str(value).format_map(fmt) if value is not None else ""

        steps = self._get(f"{key}.implementation") or []
        message = field("message") or key
        return RenderedText(
            message=message,
            suggestion=field("suggestion"),
            impact=field("impact"),
            implementation=tuple(str(step).format_map(fmt) for step in steps),
        )

    def __repr__(self) -> str:
        return f"MessageCatalog(language={self.language!r})"
