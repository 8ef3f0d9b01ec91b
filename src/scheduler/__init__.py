"""Task scheduling — schedule models, runners, the scheduler and the execution pipeline."""

from src.scheduler.context import RunContext
from src.scheduler.engine import Scheduler
from src.scheduler.executor import ExecutionPipeline
from src.scheduler.models import Task, parse, render
from src.scheduler.runner import RunnerState, TaskRunner
from src.scheduler.shaping import Payload, QueryResult

__all__ = [
    "ExecutionPipeline",
    "Payload",
    "QueryResult",
    "RunContext",
    "RunnerState",
    "Scheduler",
    "Task",
    "TaskRunner",
    "parse",
    "render",
]
