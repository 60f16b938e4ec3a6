"""Domain fallback grouping (core domain)."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from core.models import DEFAULT_COLOR, CandidateGroup, GroupSource, Tab

LOGGER = logging.getLogger(__name__)

MIN_DOMAIN_GROUP_SIZE = 2


def registrable_domain(hostname: str) -> str:
    """Approximate eTLD+1 as the last two dot-separated labels."""

    parts = hostname.split(".")
    if len(parts) > 1:
        return ".".join(parts[-2:])
    return hostname


def group_by_domain(tabs: Iterable[Tab]) -> List[CandidateGroup]:
    """Bucket tabs by registrable domain and emit buckets of two or more."""

    buckets: Dict[str, List[Tab]] = {}
    for tab in tabs:
        hostname = tab.hostname
        if not hostname:
            continue
        buckets.setdefault(registrable_domain(hostname), []).append(tab)

    groups: List[CandidateGroup] = []
    for domain, domain_tabs in buckets.items():
        if len(domain_tabs) < MIN_DOMAIN_GROUP_SIZE:
            continue
        groups.append(
            CandidateGroup(
                id=f"domain-{domain}",
                name=domain,
                color=DEFAULT_COLOR,
                source=GroupSource.DOMAIN,
                tabs=tuple(domain_tabs),
            )
        )
        LOGGER.debug("Domain group %s has %s tab(s)", domain, len(domain_tabs))
    return groups
