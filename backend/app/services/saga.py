"""Ordered (action, compensation) steps with reverse-order rollback.

A saga approximates a transaction over resources that cannot share one:
each step's action runs in order, and when an action raises, every step that
was started (the failing one included, since a remote call may take effect
before erroring) is compensated in reverse order. Compensations are guarded
one by one, so a failing compensation never prevents the next one from
running. Every action and compensation outcome is recorded in a
:class:`SagaReport`.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from app.core.exceptions import SagaError

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]


@dataclass
class StepOutcome:
    """Result of one action or compensation."""
    name: str
    succeeded: bool
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "succeeded": self.succeeded, "reason": self.reason}


@dataclass
class SagaReport:
    """Per-step outcomes of one saga run."""
    name: str
    actions: list[StepOutcome] = field(default_factory=list)
    compensations: list[StepOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(outcome.succeeded for outcome in self.actions)

    @property
    def failed_actions(self) -> list[StepOutcome]:
        return [outcome for outcome in self.actions if not outcome.succeeded]

    @property
    def failed_compensations(self) -> list[StepOutcome]:
        return [outcome for outcome in self.compensations if not outcome.succeeded]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "succeeded": self.succeeded,
            "actions": [o.to_dict() for o in self.actions],
            "compensations": [o.to_dict() for o in self.compensations],
        }


@dataclass
class SagaStep:
    name: str
    action: Action
    compensation: Action | None = None


class Saga:
    """Run steps in order, compensating started steps on the first failure."""

    def __init__(self, name: str):
        self.name = name
        self.steps: list[SagaStep] = []

    def add_step(self, name: str, action: Action, compensation: Action | None = None) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, compensation=compensation))
        return self

    async def run(self) -> SagaReport:
        """Execute the saga.

        Returns:
            The report when every action succeeded.

        Raises:
            SagaError: when an action failed; the original exception is the
                ``__cause__`` and ``report`` holds all outcomes.
        """
        report = SagaReport(name=self.name)
        started: list[SagaStep] = []

        for step in self.steps:
            started.append(step)
            try:
                await step.action()
            except Exception as e:
                report.actions.append(StepOutcome(step.name, False, _describe(e)))
                logger.error(f"[saga:{self.name}] step '{step.name}' failed: {_describe(e)}")
                await self._compensate(started, report)
                raise SagaError(f"Saga '{self.name}' failed at step '{step.name}'", report) from e
            report.actions.append(StepOutcome(step.name, True))

        return report

    async def _compensate(self, started: list[SagaStep], report: SagaReport) -> None:
        for step in reversed(started):
            if step.compensation is None:
                continue
            try:
                await step.compensation()
            except Exception as e:
                report.compensations.append(StepOutcome(step.name, False, _describe(e)))
                logger.error(
                    f"[saga:{self.name}] compensation for '{step.name}' failed: {_describe(e)}"
                )
            else:
                report.compensations.append(StepOutcome(step.name, True))
                logger.info(f"[saga:{self.name}] compensated '{step.name}'")


async def run_best_effort(name: str, steps: list[tuple[str, Action]]) -> SagaReport:
    """Run every step regardless of earlier failures and record each outcome.

    Failures are logged, never raised.
    """
    report = SagaReport(name=name)
    for step_name, action in steps:
        try:
            await action()
        except Exception as e:
            report.actions.append(StepOutcome(step_name, False, _describe(e)))
            logger.error(f"[{name}] '{step_name}' failed: {_describe(e)}")
        else:
            report.actions.append(StepOutcome(step_name, True))
    return report


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {error}"
