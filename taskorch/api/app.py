"""FastAPI web application for taskorch.

A thin shell: each endpoint runs one orchestrator command, then hands the
resulting instructions to an `InstructionDispatcher` bound to the request's
database session and the process notifier.
"""

import logging
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from taskorch.config import get_settings
from taskorch.database.database import get_db
from taskorch.database.points_repository import PointsRepository
from taskorch.database.repository import SqlTaskStore
from taskorch.dispatch import InstructionDispatcher
from taskorch.engine.orchestrator import TaskOrchestrator
from taskorch.engine.scoring import calculate_points, derive_multipliers
from taskorch.engine.statistics import StatisticsPeriod, TaskStatistics
from taskorch.errors import (
    CyclicDependencyError,
    NotFoundError,
    StateTransitionError,
    TaskOrchestrationError,
    ValidationError,
)
from taskorch.models.constants import XP_PER_POINT
from taskorch.models.dates import to_naive_utc
from taskorch.models.instructions import CommandResult
from taskorch.models.points import PointsBreakdown, PointsHistory, PointsMultiplier, PointsSource
from taskorch.models.query import TaskQuery
from taskorch.models.recurrence import RecurringPattern
from taskorch.models.task import Priority, Task, TaskStatus
from taskorch.notifications import InMemoryNotifier

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="taskorch API",
    description="Task orchestration: lifecycle, dependencies, recurrence and points",
    version="0.1.0"
)

# Process-wide state, built lazily from storage on first use
_orchestrator: Optional[TaskOrchestrator] = None
_orchestrator_lock = threading.Lock()
_notifier = InMemoryNotifier()


def get_notifier() -> InMemoryNotifier:
    return _notifier


def get_orchestrator(db: Session = Depends(get_db)) -> TaskOrchestrator:
    """Return the process orchestrator, loading it from storage the first time."""
    global _orchestrator
    with _orchestrator_lock:
        if _orchestrator is None:
            orchestrator = TaskOrchestrator(
                deadline_lead=timedelta(hours=settings.deadline_lead_hours),
                enforce_max_occurrences=settings.enforce_max_occurrences,
            )
            count = orchestrator.load(SqlTaskStore(db).fetch(TaskQuery.everything()))
            logger.info(f"Loaded {count} tasks from storage")
            _orchestrator = orchestrator
    return _orchestrator


# Request / response models
class TaskCreateRequest(BaseModel):
    """Body for task creation."""
    title: str
    user_id: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    reminder_date: Optional[datetime] = None
    estimated_duration_sec: Optional[float] = None
    location: Optional[str] = None
    url: Optional[str] = None
    recurring_pattern: Optional[RecurringPattern] = None
    parent_task_id: Optional[str] = None
    prerequisite_ids: List[str] = Field(default_factory=list)


class TaskUpdateRequest(BaseModel):
    """Body for task updates. Only fields present in the request are changed."""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    due_date: Optional[datetime] = None
    reminder_date: Optional[datetime] = None
    estimated_duration_sec: Optional[float] = None
    location: Optional[str] = None
    url: Optional[str] = None
    recurring_pattern: Optional[RecurringPattern] = None


class TaskAction(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    COMPLETE = "complete"
    UNCOMPLETE = "uncomplete"
    CANCEL = "cancel"
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"


class PointsCalculateRequest(BaseModel):
    source: PointsSource
    base_value: int = Field(1, ge=0)
    multipliers: List[PointsMultiplier] = Field(default_factory=list)
    user_level: int = Field(0, ge=0)


class PointsCalculateResponse(BaseModel):
    base: int
    factor: float
    bonus: int
    points: int
    xp: int


class PointsAwardRequest(BaseModel):
    """Award points; multipliers are derived from level, streaks, time and ledger consistency."""
    user_id: str
    source: PointsSource
    base_value: int = Field(1, ge=0)
    user_level: int = Field(0, ge=0)
    streak_days: List[int] = Field(default_factory=list)
    source_id: Optional[str] = None
    reason: Optional[str] = None
    earned_at: Optional[datetime] = None


class PointsTotalResponse(BaseModel):
    user_id: str
    total: int


def _http_error(e: TaskOrchestrationError) -> HTTPException:
    """Map domain errors to HTTP status codes."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail=e.message)
    if isinstance(e, (StateTransitionError, CyclicDependencyError)):
        return HTTPException(status_code=409, detail=e.message)
    return HTTPException(status_code=500, detail=e.message)


def _run(
    command: Callable[[], CommandResult],
    db: Session,
    notifier: InMemoryNotifier,
    orchestrator: TaskOrchestrator,
) -> CommandResult:
    """Run one orchestrator command and dispatch its instructions.

    If storage rejects the instructions, the orchestrator already holds the new
    state, so it is reloaded from storage before the 500 is returned.
    """
    try:
        result = command()
    except TaskOrchestrationError as e:
        logger.info(f"Command rejected: {type(e).__name__}: {e.message}")
        raise _http_error(e) from e

    store = SqlTaskStore(db)
    try:
        InstructionDispatcher(store, notifier).dispatch(result)
    except TaskOrchestrationError as e:
        logger.error(f"Failed to apply instructions: {type(e).__name__}: {str(e)}")
        _resync(orchestrator, store)
        raise HTTPException(status_code=500, detail=f"Failed to apply instructions: {e.message}") from e
    return result


def _resync(orchestrator: TaskOrchestrator, store: SqlTaskStore) -> None:
    try:
        count = orchestrator.load(store.fetch(TaskQuery.everything()))
        logger.warning(f"Reloaded {count} tasks from storage after a failed write")
    except TaskOrchestrationError as e:
        logger.error(
            f"Reload after failed write also failed, in-memory tasks may differ from storage: "
            f"{type(e).__name__}: {str(e)}"
        )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


@app.post("/tasks", response_model=CommandResult, status_code=201)
async def create_task(
    request: TaskCreateRequest,
    db: Session = Depends(get_db),
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    notifier: InMemoryNotifier = Depends(get_notifier),
):
    """Create a task."""
    fields = request.model_dump(exclude={"title", "recurring_pattern"})
    return _run(
        lambda: orchestrator.new_task(request.title, recurring_pattern=request.recurring_pattern, **fields),
        db,
        notifier,
        orchestrator,
    )


@app.get("/tasks", response_model=List[Task])
async def list_tasks(
    status: Optional[TaskStatus] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    include_archived: bool = False,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    """List tasks, oldest first. Archived tasks are hidden unless requested."""
    query = TaskQuery(
        statuses=[status] if status is not None else None,
        category=category,
        search=search,
        archived=None if include_archived else False,
    )
    return [t for t in orchestrator.all_tasks() if query.matches(t)]


@app.get("/tasks/overdue", response_model=CommandResult)
async def overdue_tasks(
    db: Session = Depends(get_db),
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    notifier: InMemoryNotifier = Depends(get_notifier),
):
    """Report overdue tasks (no status change)."""
    return _run(orchestrator.check_overdue, db, notifier, orchestrator)


@app.get("/statistics", response_model=TaskStatistics)
async def task_statistics(
    period: StatisticsPeriod = StatisticsPeriod.THIS_WEEK,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
):
    """Task statistics for a period."""
    try:
        return orchestrator.statistics(period, start=start, end=end)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.get("/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str, orchestrator: TaskOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.get_task(task_id)
    except NotFoundError as e:
        raise _http_error(e) from e


@app.patch("/tasks/{task_id}", response_model=CommandResult)
async def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    db: Session = Depends(get_db),
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    notifier: InMemoryNotifier = Depends(get_notifier),
):
    """Update editable task fields."""
    changes = request.model_dump(exclude_unset=True, exclude={"recurring_pattern"})
    if "recurring_pattern" in request.model_fields_set:
        changes["recurring_pattern"] = request.recurring_pattern
    return _run(lambda: orchestrator.update_task(task_id, **changes), db, notifier, orchestrator)


@app.delete("/tasks/{task_id}", response_model=CommandResult)
async def delete_task(
    task_id: str,
    db: Session = Depends(get_db),
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    notifier: InMemoryNotifier = Depends(get_notifier),
):
    """Hard-delete a task."""
    return _run(lambda: orchestrator.delete_task(task_id), db, notifier, orchestrator)


@app.post("/tasks/{task_id}/prerequisites/{prerequisite_id}", response_model=CommandResult)
async def add_prerequisite(
    task_id: str,
    prerequisite_id: str,
    db: Session = Depends(get_db),
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    notifier: InMemoryNotifier = Depends(get_notifier),
):
    return _run(lambda: orchestrator.add_dependency(task_id, prerequisite_id), db, notifier, orchestrator)


@app.delete("/tasks/{task_id}/prerequisites/{prerequisite_id}", response_model=CommandResult)
async def remove_prerequisite(
    task_id: str,
    prerequisite_id: str,
    db: Session = Depends(get_db),
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    notifier: InMemoryNotifier = Depends(get_notifier),
):
    return _run(lambda: orchestrator.remove_dependency(task_id, prerequisite_id), db, notifier, orchestrator)


@app.get("/tasks/{task_id}/dependents", response_model=List[Task])
async def task_dependents(task_id: str, orchestrator: TaskOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.dependents(task_id)
    except NotFoundError as e:
        raise _http_error(e) from e


@app.post("/tasks/{task_id}/{action}", response_model=CommandResult)
async def task_action(
    task_id: str,
    action: TaskAction,
    db: Session = Depends(get_db),
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
    notifier: InMemoryNotifier = Depends(get_notifier),
):
    """Run a lifecycle or archive command on a task."""
    commands = {
        TaskAction.START: orchestrator.start_task,
        TaskAction.PAUSE: orchestrator.pause_task,
        TaskAction.RESUME: orchestrator.resume_task,
        TaskAction.COMPLETE: orchestrator.complete_task,
        TaskAction.UNCOMPLETE: orchestrator.uncomplete_task,
        TaskAction.CANCEL: orchestrator.cancel_task,
        TaskAction.ARCHIVE: orchestrator.archive_task,
        TaskAction.UNARCHIVE: orchestrator.unarchive_task,
    }
    command = commands[action]
    return _run(lambda: command(task_id), db, notifier, orchestrator)


@app.post("/points/calculate", response_model=PointsCalculateResponse)
async def calculate(request: PointsCalculateRequest):
    """Score an award without recording it."""
    calc = calculate_points(
        request.source.base_points, request.base_value, request.multipliers, request.user_level
    )
    return PointsCalculateResponse(
        base=calc.base,
        factor=calc.factor,
        bonus=calc.bonus,
        points=calc.points,
        xp=calc.points * XP_PER_POINT,
    )


@app.post("/points/award", response_model=PointsHistory, status_code=201)
async def award_points(request: PointsAwardRequest, db: Session = Depends(get_db)):
    """Score an award from raw signals and append it to the ledger."""
    repo = PointsRepository(db)
    earned_at = to_naive_utc(request.earned_at) or datetime.utcnow()
    rate = repo.consistency_rate(request.user_id, earned_at, settings.consistency_window_days)
    multipliers = derive_multipliers(
        level=request.user_level,
        streak_days=request.streak_days,
        consistency_rate=rate,
        now=earned_at,
    )
    try:
        return repo.award(
            request.user_id,
            request.source,
            request.base_value,
            multipliers=multipliers,
            user_level=request.user_level,
            source_id=request.source_id,
            reason=request.reason,
            earned_at=earned_at,
        )
    except TaskOrchestrationError as e:
        raise _http_error(e) from e


@app.get("/points/{user_id}/total", response_model=PointsTotalResponse)
async def points_total(user_id: str, db: Session = Depends(get_db)):
    return PointsTotalResponse(user_id=user_id, total=PointsRepository(db).total(user_id))


@app.get("/points/{user_id}/history", response_model=List[PointsHistory])
async def points_history(user_id: str, limit: Optional[int] = None, db: Session = Depends(get_db)):
    return PointsRepository(db).history(user_id, limit=limit)


@app.get("/points/{user_id}/breakdown", response_model=List[PointsBreakdown])
async def points_breakdown(
    user_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    return PointsRepository(db).breakdown(user_id, start, end)
