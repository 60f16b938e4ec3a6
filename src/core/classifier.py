"""AI classification adapter (core domain).

The classifier is a black box that returns free-form text. This module turns
that text into validated candidate groups and guarantees the caller never
sees an exception: a skipped call and a failed call both end up as "no AI
groups".
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import time
from typing import Any, Callable, List, Optional, Sequence, Union

from core.colors import normalize_color, palette_color
from core.config import UserSettings
from core.errors import ClassifierFailure
from core.models import CandidateGroup, GroupSource, Tab
from core.ports import ClassifierPort

LOGGER = logging.getLogger(__name__)

MIN_AI_GROUP_SIZE = 2

DEFAULT_SYSTEM_PROMPT = """You are a browser tab grouping assistant.
Group the user's tabs by topic and content relatedness.
Return the result as JSON in the form: { "groups": [{ "name": "group name", "color": "color", "tabIds": [tab index array] }] }
Available colors are: "blue", "red", "green", "yellow", "purple", "cyan", "orange", "pink", "grey"
Each tab's index is its position in the provided tab list (starting at 0).
Try to create at most 5 groups, each containing at least 2 tabs.
Tabs that do not fit any group may go into a group named "Other"."""


@dataclass(frozen=True)
class Ok:
    groups: List[CandidateGroup]


@dataclass(frozen=True)
class Skipped:
    reason: str


@dataclass(frozen=True)
class Failed:
    reason: str


ClassifierResult = Union[Ok, Skipped, Failed]


def build_user_prompt(tabs: Sequence[Tab]) -> str:
    """Serialize tabs as an indexed list of title/url pairs."""

    payload = [{"title": tab.title or "Untitled", "url": tab.url or ""} for tab in tabs]
    return "Please group the following tabs:\n" + json.dumps(payload, indent=2, ensure_ascii=False)


def extract_json_object(text: str) -> Optional[dict]:
    """Return the first JSON object embedded in text, or None.

    Pure JSON is tried first. Otherwise every ``{`` is scanned for its
    balanced closing brace (ignoring braces inside strings) and the first
    substring that decodes to an object wins.
    """

    stripped = text.strip()
    try:
        decoded = json.loads(stripped)
    except ValueError:
        decoded = None
    if isinstance(decoded, dict):
        return decoded

    start = stripped.find("{")
    while start != -1:
        end = _balanced_end(stripped, start)
        if end is None:
            return None
        try:
            decoded = json.loads(stripped[start : end + 1])
        except ValueError:
            decoded = None
        if isinstance(decoded, dict):
            return decoded
        start = stripped.find("{", start + 1)
    return None


def _balanced_end(text: str, start: int) -> Optional[int]:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _coerce_index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def groups_from_payload(
    payload: dict, tabs: Sequence[Tab], stamp: int
) -> List[CandidateGroup]:
    """Validate the classifier payload and map indices back to tabs.

    Raises ClassifierFailure when ``groups`` is missing or not a list.
    """

    raw_groups = payload.get("groups")
    if not isinstance(raw_groups, list):
        raise ClassifierFailure("Classifier response has no 'groups' list")

    claimed: set[int] = set()
    groups: List[CandidateGroup] = []
    for position, raw in enumerate(raw_groups):
        if not isinstance(raw, dict):
            continue
        raw_ids = raw.get("tabIds")
        if not isinstance(raw_ids, list):
            raw_ids = []

        members: List[Tab] = []
        for value in raw_ids:
            index = _coerce_index(value)
            if index is None or not 0 <= index < len(tabs):
                continue
            tab = tabs[index]
            # A tab may only land in one group per run.
            if tab.id in claimed:
                continue
            claimed.add(tab.id)
            members.append(tab)

        if len(members) < MIN_AI_GROUP_SIZE:
            claimed.difference_update(tab.id for tab in members)
            continue

        name = raw.get("name")
        groups.append(
            CandidateGroup(
                id=f"ai-group-{stamp}-{position}",
                name=str(name).strip() if name else f"Group {position + 1}",
                color=normalize_color(raw.get("color"), fallback=palette_color(position)),
                source=GroupSource.AI,
                tabs=tuple(members),
            )
        )
    return groups


class AIClassificationAdapter:
    """Wraps the classifier port with gating, parsing and validation."""

    def __init__(
        self,
        classifier: ClassifierPort,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._classifier = classifier
        self._clock = clock

    async def evaluate(
        self, tabs: Sequence[Tab], settings: UserSettings, force: bool = False
    ) -> ClassifierResult:
        """Run the classifier and return a tagged result."""

        provider = settings.ai_provider
        if not provider.configured:
            return Skipped("no API key configured")
        if not settings.ai_enabled and not force:
            return Skipped("AI grouping disabled")
        if not tabs:
            return Ok([])

        system_prompt = provider.system_prompt or DEFAULT_SYSTEM_PROMPT
        try:
            content = await self._classifier.complete(provider, system_prompt, build_user_prompt(tabs))
            if not content:
                raise ClassifierFailure("Classifier returned empty content")
            payload = extract_json_object(content)
            if payload is None:
                raise ClassifierFailure("No JSON object found in classifier response")
            groups = groups_from_payload(payload, tabs, int(self._clock() * 1000))
        except Exception as exc:
            LOGGER.warning("AI classification failed: %s", exc)
            return Failed(str(exc))
        return Ok(groups)

    async def classify(
        self, tabs: Sequence[Tab], settings: UserSettings, force: bool = False
    ) -> List[CandidateGroup]:
        """Return AI candidate groups; skipped and failed calls yield []."""

        result = await self.evaluate(tabs, settings, force=force)
        if isinstance(result, Ok):
            LOGGER.info("AI produced %s group(s)", len(result.groups))
            return result.groups
        if isinstance(result, Skipped):
            LOGGER.info("Skipping AI grouping: %s", result.reason)
        return []
