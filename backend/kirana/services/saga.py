"""
Saga: ordered steps with compensations

Each step commits on its own. When a step raises, the compensations of
the steps that already completed run in reverse order. A compensation
that raises is logged and skipped so the remaining ones still run; the
original step error is what the caller sees.

USAGE:
    saga = Saga("provision_store_owner", [
        SagaStep("create_user", create, compensation=undo_create),
        SagaStep("create_store", insert_store, compensation=undo_store),
    ], logger=current_app.logger, reset=db.session.rollback)
    context = saga.run({"payload": payload})
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable


class SagaError(Exception):
    """A step failed; completed steps were compensated."""
    def __init__(self, step: str, cause: Exception, compensation_failures: list[str] | None = None):
        super().__init__(str(cause) or f"Step {step} failed")
        self.step = step
        self.cause = cause
        self.compensation_failures = compensation_failures or []


@dataclass
class SagaStep:
    name: str
    action: Callable[[dict], Any]
    compensation: Callable[[dict], None] | None = None


@dataclass
class Saga:
    name: str
    steps: list[SagaStep]
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))
    # Called before each compensation to discard a failed unit of work
    reset: Callable[[], None] | None = None

    def run(self, context: dict | None = None) -> dict:
        """
        Run every step in order. Each step's return value is stored in
        context[step.name]. Raises SagaError after compensating.
        """
        context = {} if context is None else context
        completed: list[SagaStep] = []

        for step in self.steps:
            try:
                context[step.name] = step.action(context)
            except Exception as exc:
                self.logger.error("%s: step %s failed: %s", self.name, step.name, exc)
                failures = self._compensate(completed, context)
                raise SagaError(step.name, exc, failures) from exc
            completed.append(step)

        return context

    def _compensate(self, completed: list[SagaStep], context: dict) -> list[str]:
        failures: list[str] = []
        for step in reversed(completed):
            if step.compensation is None:
                continue
            if self.reset is not None:
                self.reset()
            try:
                step.compensation(context)
                self.logger.info("%s: compensated %s", self.name, step.name)
            except Exception:
                # Best effort: keep unwinding the remaining steps
                self.logger.exception("%s: compensation for %s failed", self.name, step.name)
                failures.append(step.name)
        return failures
