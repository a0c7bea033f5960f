"""
Copyright (c) 2025 Binary Core LLC. All rights reserved.

This file is part of ScalpScan, a proprietary product of Binary Core LLC.
Unauthorized copying, modification, or distribution of this file,
via any medium, is strictly prohibited.

Progress tracking for the staged comparison pipeline
"""

from typing import Dict, List, Optional

from api.schemas.analysis import (
    CompleteEvent,
    ComparisonResult,
    ProgressEvent,
    StepProgress,
)
from core import constants
from utils import sys_utils


class ProgressTracker:
    """
    Request-scoped state of the five pipeline stages.

    Only the orchestrating coroutine calls into the tracker. Every transition
    returns an event holding copies of the steps, so frames already handed out
    never change afterwards.
    """

    def __init__(self):
        self._request_start = sys_utils.get_monotonic_time()
        self._steps: Dict[str, StepProgress] = {
            name: StepProgress(name=name, label=constants.StepName.LABELS[name])
            for name in constants.StepName.ALL
        }
        self._started_at: Dict[str, float] = {}
        self._current: Optional[str] = None

    @property
    def current_step(self) -> Optional[str]:
        return self._current

    def start(self, name: str) -> ProgressEvent:
        """Move a step from pending to running."""
        step = self._get(name)
        if step.status != constants.StepStatus.PENDING:
            raise RuntimeError(f"Cannot start step '{name}' in status '{step.status}'")

        step.status = constants.StepStatus.RUNNING
        self._started_at[name] = sys_utils.get_monotonic_time()
        self._current = name
        return self._event()

    def complete(self, name: str) -> ProgressEvent:
        """Move a step from running to completed and record its duration."""
        step = self._get(name)
        if step.status != constants.StepStatus.RUNNING:
            raise RuntimeError(f"Cannot complete step '{name}' in status '{step.status}'")

        step.status = constants.StepStatus.COMPLETED
        step.duration = sys_utils.get_elapsed_ms(self._started_at[name])
        self._current = name
        return self._event()

    def snapshot(self) -> List[StepProgress]:
        """Copies of all steps in pipeline order."""
        return [self._steps[name].model_copy() for name in constants.StepName.ALL]

    def total_duration(self) -> int:
        """Milliseconds since the request started."""
        return sys_utils.get_elapsed_ms(self._request_start)

    def finish(self, result: ComparisonResult) -> CompleteEvent:
        """Terminal frame, only valid once every step has completed."""
        pending = [
            step.name
            for step in self._steps.values()
            if step.status != constants.StepStatus.COMPLETED
        ]
        if pending:
            raise RuntimeError(f"Steps not completed: {', '.join(pending)}")

        return CompleteEvent(
            steps=self.snapshot(),
            totalDuration=self.total_duration(),
            result=result,
        )

    def _get(self, name: str) -> StepProgress:
        if name not in self._steps:
            raise ValueError(f"Unknown step '{name}'")
        return self._steps[name]

    def _event(self) -> ProgressEvent:
        return ProgressEvent(steps=self.snapshot(), currentStep=self._current)
