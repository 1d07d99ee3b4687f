"""Progress tracking for translation runs."""

from datetime import datetime
from typing import Optional

from rich.progress import Progress, ProgressColumn, Task, TaskID
from rich.text import Text

from codeport.core.types import UnitReport
from codeport.utils.logging import get_logger

logger = get_logger(__name__)


class CurrentCostColumn(ProgressColumn):
    """Displays current accumulated cost."""

    def render(self, task: Task) -> Text:
        """Render the current cost.

        Args:
            task: The progress task

        Returns:
            Rich Text object with formatted cost
        """
        cost = task.fields.get("total_cost", 0.0)
        if cost > 0:
            return Text(format_cost(cost), style="yellow")
        return Text("$0.0000", style="dim")


class FailedUnitsColumn(ProgressColumn):
    """Displays how many units failed so far."""

    def render(self, task: Task) -> Text:
        failed = task.fields.get("failed", 0)
        if failed:
            return Text(f"{failed} failed", style="red")
        return Text("")


def format_cost(cost: float) -> str:
    """Format cost for display.

    Args:
        cost: Cost value to format

    Returns:
        Formatted cost string
    """
    if cost >= 1.0:
        return f"${cost:.2f}"
    elif cost >= 0.001:
        return f"${cost:.3f}"
    else:
        return f"${cost:.4f}"


class RunProgress:
    """Track run progress and statistics."""

    def __init__(
        self,
        total_units: int,
        progress: Optional[Progress] = None,
    ) -> None:
        """Initialize run progress tracking.

        Args:
            total_units: Number of discovered units
            progress: Optional Rich progress instance
        """
        self.total_units = total_units
        self.completed_units = 0
        self.failed_units = 0
        self.token_usage = 0
        self.cost = 0.0
        self.start_time = datetime.now()
        self._progress = progress
        self._task_id: Optional[TaskID] = None
        if progress is not None:
            self._task_id = progress.add_task(
                "Translating files...",
                total=total_units,
                total_cost=0.0,
                failed=0,
            )

    @property
    def time_taken(self) -> float:
        """Get the total time taken so far."""
        return (datetime.now() - self.start_time).total_seconds()

    def update(self, report: UnitReport) -> None:
        """Record a unit that reached its terminal state."""
        self.completed_units += 1
        self.token_usage += report.tokens_used
        self.cost += report.cost
        if not report.succeeded:
            self.failed_units += 1

        if self._progress is not None and self._task_id is not None:
            self._progress.update(
                self._task_id,
                completed=self.completed_units,
                total_cost=self.cost,
                failed=self.failed_units,
            )
