# Overview: Post-commit side effects (statistics, notifications) with isolated failure.

"""
Side effects that run after a primary transaction has committed.

The primary operation never waits on their outcome: each hook runs in its
own transaction, a failure is rolled back and logged, and the caller gets a
HookResult describing what happened.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from flask import current_app

from ..extensions import db


@dataclass(frozen=True)
class HookResult:
    name: str
    ok: bool
    error: str | None = None
    value: Any = None

    def to_dict(self) -> dict:
        return {"name": self.name, "ok": self.ok, "error": self.error}


def run_post_commit(name: str, func: Callable[..., Any], *args, **kwargs) -> HookResult:
    try:
        value = func(*args, **kwargs)
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Post-commit hook %s failed", name)
        return HookResult(name=name, ok=False, error=str(exc) or exc.__class__.__name__)
    return HookResult(name=name, ok=True, value=value)


def failed_hooks(results: list[HookResult]) -> list[HookResult]:
    return [r for r in results if not r.ok]
