"""Grouping orchestrator.

The orchestrator enforces a strict stage order:
1) Rules claim tabs first (one tab is enough for a group)
2) The AI classifier sees only what the rules left (two tabs minimum)
3) Domain fallback buckets whatever remains (two tabs minimum)

Each stage consumes tabs from a shrinking working set, so a tab lands in at
most one candidate group per run.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from core.classifier import AIClassificationAdapter
from core.domains import group_by_domain
from core.models import CandidateGroup, Tab
from core.ports import ConfigPort
from core.rules_engine import match_rules

LOGGER = logging.getLogger(__name__)


class GroupingOrchestrator:
    """Runs rules, AI and domain stages and concatenates their output."""

    def __init__(self, config: ConfigPort, ai_adapter: AIClassificationAdapter) -> None:
        self._config = config
        self._ai = ai_adapter

    async def generate(self, tabs: Sequence[Tab]) -> List[CandidateGroup]:
        """Return candidate groups for tabs; never raises."""

        try:
            return await self._generate(tabs)
        except Exception:
            LOGGER.exception("Grouping run aborted")
            return []

    async def _generate(self, tabs: Sequence[Tab]) -> List[CandidateGroup]:
        # Settings are read up front: failing here aborts the run.
        settings = self._config.load_settings()

        groups: List[CandidateGroup] = []
        remaining: List[Tab] = list(tabs)

        try:
            rules = self._config.get_rules()
            rule_groups, remaining = match_rules(remaining, rules)
            groups.extend(rule_groups)
        except Exception:
            LOGGER.exception("Rule stage failed")
        LOGGER.info("Rule stage: %s group(s), %s tab(s) left", len(groups), len(remaining))

        if settings.ai_enabled and len(remaining) >= 2:
            ai_groups: Optional[List[CandidateGroup]] = None
            try:
                ai_groups = await self._ai.classify(remaining, settings, force=True)
            except Exception:
                LOGGER.exception("AI stage failed")
            if ai_groups:
                groups.extend(ai_groups)
                claimed = {tab_id for group in ai_groups for tab_id in group.tab_ids}
                remaining = [tab for tab in remaining if tab.id not in claimed]
                LOGGER.info("AI stage: %s group(s), %s tab(s) left", len(ai_groups), len(remaining))
        elif remaining:
            LOGGER.info("Skipping AI stage: AI disabled or too few tabs left")

        if len(remaining) >= 2:
            try:
                groups.extend(group_by_domain(remaining))
            except Exception:
                LOGGER.exception("Domain stage failed")

        LOGGER.info("Generated %s candidate group(s)", len(groups))
        return groups
