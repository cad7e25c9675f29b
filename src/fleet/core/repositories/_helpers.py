"""Shared helpers for repository classes.

Tags:
    fleet-core, repository, helpers

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from fleet.core.models.policy import RetentionRules


def _dump_paths(paths: Iterable[str]) -> str:
    return json.dumps(list(paths))


def _load_paths(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(json.loads(raw))


def _dump_retention(rules: RetentionRules) -> str:
    return json.dumps(rules.to_dict(), sort_keys=True)


def _load_retention(raw: str | None) -> RetentionRules:
    if not raw:
        return RetentionRules()
    return RetentionRules.from_dict(json.loads(raw))


def _build_set(updates: dict[str, Any], ph: str) -> tuple[str, tuple]:
    """Build a ``SET a = ?, b = ?`` fragment from an updates dict.

    Returns ``(set_fragment, params_tuple)``.  ``None`` values are written
    as NULL, not skipped.
    """
    sets = ", ".join(f"{col} = {ph}" for col in updates)
    return sets, tuple(updates.values())
