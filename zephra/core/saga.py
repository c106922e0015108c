"""Compensating-action sagas.

A saga runs a list of (action, compensation) steps in order. When a step
fails, the compensations of that step and of every earlier step run in
reverse order, then the original error is re-raised unchanged.

This is not a database transaction: nothing makes the actions atomic
against the underlying store. Compensations are best-effort; a failing
compensation is logged and the remaining ones still run.
"""

import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from zephra.core.error_handler import redact

logger = logging.getLogger(__name__)

T = TypeVar("T")

Action = Callable[[], Awaitable[Any]]
Compensation = Callable[[], Awaitable[None]]


@dataclass
class SagaStep:
    name: str
    action: Action
    compensate: Compensation | None = None


@dataclass
class Saga:
    """Ordered steps with reverse-order compensation on failure."""

    name: str
    steps: list[SagaStep] = field(default_factory=list)

    def add_step(
        self,
        name: str,
        action: Action,
        compensate: Compensation | None = None,
    ) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, compensate=compensate))
        return self

    async def run(self) -> list[Any]:
        """Execute every step; return the action results in step order."""
        results: list[Any] = []
        attempted: list[SagaStep] = []

        for step in self.steps:
            attempted.append(step)
            try:
                results.append(await step.action())
            except Exception as error:
                logger.warning(
                    f"Saga {self.name} failed at step '{step.name}': {redact(str(error))}"
                )
                await self._compensate(attempted)
                raise

        return results

    async def _compensate(self, attempted: list[SagaStep]) -> None:
        for step in reversed(attempted):
            if step.compensate is None:
                continue
            try:
                await step.compensate()
            except Exception as compensation_error:
                logger.error(
                    f"Compensation for saga {self.name} step '{step.name}' failed: "
                    f"{redact(str(compensation_error))}"
                )


class TransactionManager:
    """Single-operation form of a saga with in-flight tracking.

    execute_with_rollback() counts the transaction id while the operation
    runs and releases it whether the operation succeeds or fails. Overlapping
    runs with the same id (a redelivered webhook) each hold their own count.
    """

    def __init__(self) -> None:
        self._active: Counter[str] = Counter()

    @property
    def active(self) -> frozenset[str]:
        return frozenset(self._active)

    def _release(self, transaction_id: str) -> None:
        self._active[transaction_id] -= 1
        if self._active[transaction_id] <= 0:
            del self._active[transaction_id]

    async def execute_with_rollback(
        self,
        transaction_id: str,
        operation: Callable[[], Awaitable[T]],
        rollback: Compensation | None = None,
    ) -> T:
        saga = Saga(name=transaction_id).add_step("operation", operation, rollback)
        self._active[transaction_id] += 1
        try:
            (result,) = await saga.run()
            return result
        finally:
            self._release(transaction_id)


transaction_manager = TransactionManager()
