"""
Rule registry: the catalog of recommendation rules.

Rule modules register their classes with ``@register_rule`` when
``queryadvisor.analyzer.rules`` is imported. Registration order is
evaluation order: for each plan node, rules run in the order their
modules register them.

The registry turns the catalog into rule instances for one analysis:
``build(config)`` drops rules disabled by configuration and validates
threshold overrides against each rule's config schema.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from pydantic import ValidationError

from queryadvisor.config import Config
from queryadvisor.exceptions import ConfigurationError

if TYPE_CHECKING:
    from queryadvisor.analyzer.rules.base import Rule
    from queryadvisor.plan.node import Engine

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="Rule")


class RuleRegistry:
    """
    Ordered catalog of rule classes, keyed by rule ID.

    Example:
        registry = get_registry()
        mysql_rules = registry.for_engine(Engine.MYSQL)
        rules = registry.build(config)
    """

    def __init__(self) -> None:
        self._rules: dict[str, type[Rule]] = {}

    def register(self, rule_cls: type[T]) -> type[T]:
        """
        Add a rule class to the catalog.

        Raises:
            ValueError: If another class already uses the same rule ID
        """
        rule_id = rule_cls.rule_id
        existing = self._rules.get(rule_id)
        if existing is not None:
            raise ValueError(
                f"Rule '{rule_id}' already registered by {existing.__module__}.{existing.__name__}"
            )
        self._rules[rule_id] = rule_cls
        return rule_cls

    def all(self) -> list[type[Rule]]:
        """Registered rule classes, in evaluation order."""
        return list(self._rules.values())

    def rule_ids(self) -> list[str]:
        return list(self._rules)

    def for_engine(self, engine: Engine | None) -> list[type[Rule]]:
        """Rule classes that apply to plans from ``engine`` (all when None)."""
        if engine is None:
            return self.all()
        return [r for r in self._rules.values() if r.engines is None or engine in r.engines]

    def build(self, config: Config, engine: Engine | None = None) -> list[Rule]:
        """
        Instantiate the rules enabled by ``config``.

        Args:
            config: Supplies per-rule enable flags and threshold overrides
            engine: If provided, skip rules restricted to other engines

        Raises:
            ConfigurationError: If an override is unknown or out of range
        """
        rules: list[Rule] = []

        for rule_cls in self.for_engine(engine):
            rule_id = rule_cls.rule_id
            if not config.is_rule_enabled(rule_id):
                logger.debug("Rule %s disabled by configuration", rule_id)
                continue
            try:
                rules.append(rule_cls(config.rule_thresholds(rule_id)))
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid thresholds for rule {rule_id}: {e}",
                    config_key=f"rules.{rule_id}",
                ) from e

        return rules


_global_registry = RuleRegistry()


def get_registry() -> RuleRegistry:
    """The registry populated by ``@register_rule``."""
    return _global_registry


def register_rule(rule_cls: type[T]) -> type[T]:
    """
    Class decorator adding a rule to the global registry.

    Example:
        @register_rule
        class FullScan(Rule):
            rule_id = "FULL_SCAN"
            ...
    """
    return _global_registry.register(rule_cls)


def build_rules(config: Config | None = None, engine: Engine | None = None) -> list[Rule]:
    """Instantiate the global catalog for ``config`` (defaults when None)."""
    return _global_registry.build(config or Config(), engine)
