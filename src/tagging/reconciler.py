# src/tagging/reconciler.py — v2
"""Batch request building and response reconciliation.

The AI service does not echo internal item ids, so every item in a
request carries a correlation key (its display name, disambiguated when
two items in the same request share one). Response entries are matched
by that key, never by position.

Acceptance rules for a response entry:
  1. it is a JSON object,
  2. its key was among the requested keys,
  3. that key was not already consumed by an earlier entry.
Rejected entries are dropped with a warning. Requested keys left
unmatched are reported as missing; the caller fails those items alone.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

from pydantic import ValidationError
from pydantic.alias_generators import to_camel, to_snake

from lumbago.core.models import BatchRequest, DataOrigin, TagSet, WorkItem, drop_empty

logger = logging.getLogger(__name__)

CORRELATION_FIELD = "originalFilename"


@dataclass
class Reconciliation:
    """Outcome of mapping one response onto one BatchRequest."""

    matched: dict[str, TagSet] = field(default_factory=dict)  # item_id -> AI tags
    missing: list[str] = field(default_factory=list)  # item ids, request order
    rejected: int = 0


# === REQUEST BUILDING ===


def assign_correlation_keys(items: list[WorkItem]) -> list[str]:
    """One unique key per item, in order.

    The display name, stripped of surrounding whitespace the same way
    response keys are, is used as-is when unique within *items*; the
    second and later items sharing a name get a " [n]" suffix.
    """
    totals = Counter(i.display_name.strip() for i in items)
    seen: Counter[str] = Counter()
    used: set[str] = set()
    keys: list[str] = []
    for item in items:
        name = item.display_name.strip()
        seen[name] += 1
        key = name
        if totals[name] > 1 and seen[name] > 1:
            n = seen[name]
            key = f"{name} [{n}]"
            while key in used or key in totals:
                n += 1
                key = f"{name} [{n}]"
        used.add(key)
        keys.append(key)
    return keys


def group_by_folder(items: Iterable[WorkItem]) -> dict[str, list[WorkItem]]:
    """Group items by parent folder, keeping first-seen folder order."""
    groups: dict[str, list[WorkItem]] = {}
    for item in items:
        groups.setdefault(item.folder, []).append(item)
    return groups


def build_requests(items: list[WorkItem], chunk_size: int = 20) -> list[BatchRequest]:
    """Split items into per-folder requests of at most *chunk_size* items."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    requests: list[BatchRequest] = []
    for folder, group in group_by_folder(items).items():
        for start in range(0, len(group), chunk_size):
            chunk = group[start:start + chunk_size]
            requests.append(
                BatchRequest(folder=folder, items=chunk, keys=assign_correlation_keys(chunk))
            )
    return requests


# === RESPONSE MAPPING ===


def reconcile(request: BatchRequest, entries: list[Any]) -> Reconciliation:
    """Map raw response entries back to the request's items by key."""
    by_key = request.key_to_item()
    result = Reconciliation()
    consumed: set[str] = set()

    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning("Dropping response entry %d: not an object (%s)", index, type(entry).__name__)
            result.rejected += 1
            continue

        raw_key = entry.get(CORRELATION_FIELD)
        key = raw_key.strip() if isinstance(raw_key, str) else None
        if key not in by_key:
            logger.warning("Dropping response entry %d: unknown key %r", index, raw_key)
            result.rejected += 1
            continue
        if key in consumed:
            logger.warning("Dropping response entry %d: duplicate key %r", index, key)
            result.rejected += 1
            continue

        tags = coerce_tags({k: v for k, v in entry.items() if k != CORRELATION_FIELD})
        if tags is None:
            logger.warning("Dropping response entry %d: no usable tags for %r", index, key)
            result.rejected += 1
            continue

        consumed.add(key)
        result.matched[by_key[key].id] = tags

    result.missing = [i.id for i in request.items if i.id not in result.matched]
    if result.missing:
        logger.warning(
            "AI returned no data for %d of %d files in %s",
            len(result.missing), len(request.items), request.folder,
        )
    return result


def coerce_tags(fields: dict[str, Any]) -> TagSet | None:
    """Validate AI fields into a TagSet, discarding fields that do not fit.

    Returns None when nothing usable is left.
    """
    data = drop_empty(fields)
    for _ in range(2):
        try:
            tags = TagSet.model_validate(data)
        except ValidationError as e:
            bad = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
            logger.debug("Discarding invalid AI fields: %s", sorted(bad))
            for name in bad:
                for variant in (name, to_camel(name), to_snake(name)):
                    data.pop(variant, None)
            continue
        return None if tags.is_empty() else tags
    return None


def merge_result(item: WorkItem, ai_tags: TagSet, origin: DataOrigin) -> TagSet:
    """Overlay AI tags onto the item's original tags and stamp the origin."""
    merged = item.original_tags.merged_with(ai_tags)
    return merged.model_copy(update={"data_origin": origin})
