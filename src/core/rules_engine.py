"""Rule compilation and matching logic (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Iterable, List, Optional, Sequence, Tuple

from core.colors import normalize_color
from core.errors import RuleCompileError
from core.models import CandidateGroup, GroupSource, Rule, RuleKind, Tab

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledRule:
    """Enabled rule with its pattern parsed, ready for per-tab matching."""

    rule: Rule
    domains: List[str]
    regex: Optional[re.Pattern]

    def matches(self, hostname: str) -> bool:
        if self.regex is not None:
            return self.regex.search(hostname) is not None
        return any(domain in hostname for domain in self.domains)


def compile_rule(rule: Rule) -> Optional[CompiledRule]:
    """Parse one rule; returns None when the rule can never match.

    Raises RuleCompileError for a custom rule whose regex does not compile.
    """

    pattern = (rule.pattern or "").strip()
    if not pattern:
        return None

    if rule.kind is RuleKind.DOMAIN:
        domains = [part.strip() for part in pattern.split(",") if part.strip()]
        if not domains:
            return None
        return CompiledRule(rule=rule, domains=domains, regex=None)

    if rule.kind is RuleKind.CUSTOM:
        try:
            regex = re.compile(rule.pattern)
        except re.error as exc:
            raise RuleCompileError(rule.name, rule.pattern, str(exc)) from exc
        return CompiledRule(rule=rule, domains=[], regex=regex)

    # AI rules are placeholders for the classifier stage, not hostname patterns.
    return None


def build_rules(rules: Iterable[Rule]) -> List[CompiledRule]:
    """Compile enabled rules in their stored order.

    A rule with a malformed pattern is logged and dropped so the remaining
    rules still apply.
    """

    compiled: List[CompiledRule] = []
    for rule in rules:
        if not rule.enabled:
            continue
        try:
            entry = compile_rule(rule)
        except RuleCompileError:
            LOGGER.exception("Skipping rule %s", rule.name)
            continue
        if entry is not None:
            compiled.append(entry)
    return compiled


def match_rules(
    tabs: Sequence[Tab], rules: Iterable[Rule]
) -> Tuple[List[CandidateGroup], List[Tab]]:
    """Partition tabs into rule groups and the unmatched remainder.

    Matching logic:
    - Rules are applied in order; a tab claimed by an earlier rule is not
      offered to later ones.
    - Domain rules match when the hostname contains any listed domain.
    - Custom rules match when their regex is found in the hostname.
    - Tabs without a parseable URL always stay in the remainder.
    - One matching tab is enough to form a group.
    """

    groups: List[CandidateGroup] = []
    remainder = list(tabs)

    for compiled in build_rules(rules):
        matched: List[Tab] = []
        kept: List[Tab] = []
        for tab in remainder:
            hostname = tab.hostname
            if hostname and compiled.matches(hostname):
                matched.append(tab)
            else:
                kept.append(tab)
        remainder = kept

        if not matched:
            continue

        rule = compiled.rule
        groups.append(
            CandidateGroup(
                id=f"rule-{rule.id}",
                name=rule.name,
                color=normalize_color(rule.color),
                source=GroupSource.RULE,
                tabs=tuple(matched),
            )
        )
        LOGGER.debug("Rule %r matched %s tab(s)", rule.name, len(matched))

    return groups, remainder
