# Overview: Cache invalidation coordinator; maps mutation topics to cache keys and key groups.

"""
Cache Invalidation Coordinator

Writers publish a topic after their transaction commits:

    invalidate("order", "inventory")

The topic -> {keys, groups, include} table lives in configuration
(CACHE_INVALIDATION_TOPICS), not code. Readers that store parametrized keys
register them under a group (e.g. "orders_search"), so a topic can evict the
whole family without scanning the cache keyspace.

Eviction is best-effort and idempotent: a backend failure is logged and the
remaining keys are still processed. The 1-second TTL on every entry bounds
staleness if an eviction is lost.
"""

from __future__ import annotations

from typing import Any, Callable

from flask import current_app

from ..extensions import cache


def _topic_table() -> dict:
    return current_app.config.get("CACHE_INVALIDATION_TOPICS", {})


def resolve_topic(topic: str, table: dict | None = None) -> tuple[list[str], list[str]]:
    """Flatten a topic (and the topics it includes) into (keys, groups)."""
    table = _topic_table() if table is None else table
    keys: list[str] = []
    groups: list[str] = []
    seen: set[str] = set()
    pending = [topic]

    while pending:
        name = pending.pop(0)
        if name in seen:
            continue
        seen.add(name)
        entry = table.get(name)
        if entry is None:
            raise KeyError(name)
        for key in entry.get("keys", []):
            if key not in keys:
                keys.append(key)
        for group in entry.get("groups", []):
            if group not in groups:
                groups.append(group)
        pending.extend(entry.get("include", []))

    return keys, groups


def invalidate(*topics: str) -> dict:
    """
    Evict every cache key and group subscribed to the given topics.

    Returns a summary {"keys": [...], "groups": [...], "failed": [...]}.
    Never raises for backend failures.
    """
    table = _topic_table()
    keys: list[str] = []
    groups: list[str] = []
    for topic in topics:
        try:
            topic_keys, topic_groups = resolve_topic(topic, table)
        except KeyError as exc:
            current_app.logger.warning("Unknown cache invalidation topic %r (via %r)", exc.args[0], topic)
            continue
        keys.extend(k for k in topic_keys if k not in keys)
        groups.extend(g for g in topic_groups if g not in groups)

    failed = []
    for key in keys:
        try:
            cache.delete(key)
        except Exception:
            current_app.logger.warning("Cache eviction failed for key %s", key, exc_info=True)
            failed.append(key)
    for group in groups:
        try:
            cache.delete_group(group)
        except Exception:
            current_app.logger.warning("Cache eviction failed for group %s", group, exc_info=True)
            failed.append(group)

    return {"keys": keys, "groups": groups, "failed": failed}


def cached(key: str, compute: Callable[[], Any], group: str | None = None) -> Any:
    """Read-through helper for projections. A failing backend degrades to an uncached read."""
    try:
        value = cache.get(key)
    except Exception:
        current_app.logger.warning("Cache read failed for key %s", key, exc_info=True)
        value = None
    if value is not None:
        return value

    value = compute()
    try:
        cache.set(key, value, group=group)
    except Exception:
        current_app.logger.warning("Cache write failed for key %s", key, exc_info=True)
    return value
