import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .target import TargetPlatform

log = logging.getLogger(__name__)

ALLOW = 'allow'
DISALLOW = 'disallow'


@dataclass(frozen=True)
class PlatformRule:
    action: str
    os_name: Optional[str] = None
    os_arch: Optional[str] = None
    features: Dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> 'PlatformRule':
        action = raw.get('action', ALLOW)
        if action not in (ALLOW, DISALLOW):
            log.warning(f"Unknown rule action: {action}. Treating it as '{ALLOW}'.")
            action = ALLOW
        os_rule = raw.get('os') if isinstance(raw.get('os'), dict) else {}
        features = raw.get('features') if isinstance(raw.get('features'), dict) else {}
        return cls(action, os_rule.get('name'), os_rule.get('arch'), dict(features))

    def matches(self, target: TargetPlatform, features: Optional[Mapping[str, bool]] = None) -> bool:
        """Whether the rule's condition holds for the target; the action is not considered."""
        if self.os_name is not None and self.os_name != target.os_name:
            return False
        if self.os_arch is not None and self.os_arch != target.arch:
            return False
        enabled = features or {}
        for name, expected in self.features.items():
            if bool(enabled.get(name, False)) != bool(expected):
                return False
        return True


def parse_rules(raw_rules: Optional[List[Dict[str, Any]]]) -> List[PlatformRule]:
    if not raw_rules:
        return []
    return [PlatformRule.from_json(rule) for rule in raw_rules if isinstance(rule, dict)]


def is_allowed(rules: List[PlatformRule], target: TargetPlatform,
               features: Optional[Mapping[str, bool]] = None) -> bool:
    """
    Evaluates a rule list against the target.

    An empty list always allows. Otherwise the starting state is "allowed"
    only when no rule is an ``allow`` rule, so a lone ``allow`` for another
    platform excludes the item while a lone ``disallow`` for another
    platform keeps it. Every matching rule then overrides the state in
    order: the last match wins.
    """
    if not rules:
        return True

    allowed = not any(rule.action == ALLOW for rule in rules)
    for rule in rules:
        if rule.matches(target, features):
            allowed = rule.action == ALLOW
    return allowed
