"""Rule registry.

Rules register themselves with :func:`register_rule` when their module is
imported; the imports at the bottom of this module load them all.
"""

from __future__ import annotations

import logging

from ._base import (
    Diagnostic,
    Edit,
    EditKind,
    FileContext,
    RuleError,
    Severity,
    StyleRule,
)

__all__ = [
    "Diagnostic",
    "Edit",
    "EditKind",
    "FileContext",
    "RuleError",
    "Severity",
    "StyleRule",
    "available_rules",
    "load_rules",
    "register_rule",
]

logger = logging.getLogger("rules")

_RULE_REGISTRY: dict[str, type[StyleRule]] = {}


def register_rule(rule_class: type[StyleRule]) -> type[StyleRule]:
    """Register a rule class in the global registry.

    Args:
        rule_class: Rule class to register

    Returns:
        The same rule class (for use as decorator)
    """
    _RULE_REGISTRY[rule_class.rule_id] = rule_class
    return rule_class


def available_rules() -> dict[str, type[StyleRule]]:
    """Return registered rules ordered by priority."""
    return dict(sorted(_RULE_REGISTRY.items(), key=lambda item: item[1].priority))


def load_rules(
    enabled: set[str] | None = None,
    disabled: set[str] | None = None,
) -> list[StyleRule]:
    """Instantiate rules based on enabled/disabled sets.

    Args:
        enabled: Rule ids to enable (None = all rules)
        disabled: Rule ids to skip

    Returns:
        Rule instances ordered by priority
    """
    rules = []
    for rule_id, rule_class in available_rules().items():
        if enabled is not None and rule_id not in enabled:
            continue
        if disabled is not None and rule_id in disabled:
            continue
        rules.append(rule_class())
    logger.debug("Loaded rules: %s", ", ".join(rule.rule_id for rule in rules))
    return rules


# Import rules to register them (must be at end of file)
from . import (  # noqa: E402
    includes,  # noqa: F401
    layout,  # noqa: F401
    modern,  # noqa: F401
    naming,  # noqa: F401
    spacing,  # noqa: F401
    statements,  # noqa: F401
)
