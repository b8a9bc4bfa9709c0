"""
SprintFlow API
FastAPI application exposing the sprint lifecycle engine:
- /projects/{project_id}/sprints: create, list, update, delete, start, complete, reopen, extend, burndown
- /projects/{project_id}/sprint-settings: per-project sprint defaults
- /tickets/{ticket_id}/sprint-history: a ticket's sprint ledger

Authentication is handled upstream; the caller's id arrives in X-User-Id.
"""
import os
from uuid import UUID
from typing import List

from fastapi import FastAPI, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from sprintflow.core.logging import setup_logging, get_logger, bind_request_context, clear_request_context
from sprintflow import __version__
from sprintflow.utils import db as db_utils
from sprintflow.schema import (
    BurndownUnit, CreateSprintRequest, UpdateSprintRequest, StartSprintRequest, CompleteSprintRequest,
    ExtendSprintRequest, UpdateSprintSettingsRequest, SprintRead, TicketDispositionRead,
    CompleteSprintResponse, SprintSettingsRead, HistoryEntryRead, BurndownRead, BurndownPoint
)
from sprintflow.services.authorization import CapabilityChecker, LocalModeChecker, require_capability
from sprintflow.services.exceptions import (
    SprintLifecycleError, SprintNotFound, InvalidTransition, ConflictingActiveSprint,
    InvalidTarget, InvalidEndDate, CapabilityDenied
)
from sprintflow.services.lifecycle import SprintLifecycleController

# Initialize logging before app creation
setup_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="SprintFlow API",
    version=__version__,
    description="Sprint lifecycle and ticket disposition engine",
)

# ============================================
# DEPENDENCY INJECTION
# ============================================

def get_controller() -> SprintLifecycleController:
    """Lifecycle controller bound to the application engine."""
    return SprintLifecycleController(db_utils.engine)


def get_capability_checker() -> CapabilityChecker:
    return LocalModeChecker()


async def get_user_id(x_user_id: UUID = Header(..., alias="X-User-Id")) -> UUID:
    bind_request_context(user_id=x_user_id)
    return x_user_id


async def require_sprint_manager(
    project_id: UUID,
    user_id: UUID = Depends(get_user_id),
    checker: CapabilityChecker = Depends(get_capability_checker),
) -> UUID:
    """Resolves to the caller's id once they may manage sprints in the project."""
    bind_request_context(user_id=user_id, project_id=project_id)
    require_capability(checker, user_id, project_id)
    return user_id

@app.middleware("http")
async def reset_log_context(request: Request, call_next):
    clear_request_context()
    return await call_next(request)

# ============================================
# ERROR MAPPING
# ============================================

ERROR_STATUS = {
    SprintNotFound: 404,
    InvalidTransition: 400,
    InvalidTarget: 400,
    InvalidEndDate: 400,
    ConflictingActiveSprint: 409,
    CapabilityDenied: 403,
}


@app.exception_handler(SprintLifecycleError)
async def lifecycle_error_handler(request: Request, exc: SprintLifecycleError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    body = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, InvalidTransition):
        body["current_status"] = exc.from_status.value
    if isinstance(exc, ConflictingActiveSprint):
        body["active_sprint_id"] = str(exc.active_sprint_id) if exc.active_sprint_id else None
        body["active_sprint_name"] = exc.active_sprint_name
    logger.warning("lifecycle_request_rejected", path=request.url.path, status_code=status_code, error=body["error"])
    return JSONResponse(status_code=status_code, content=body)

# ============================================
# STARTUP/SHUTDOWN EVENTS
# ============================================

@app.on_event("startup")
async def startup_event():
    logger.info("api_startup", version=__version__, mode=os.getenv("SPRINTFLOW_MODE", "local"))
    try:
        db_utils.init_db()
    except Exception as e:
        logger.error("database_initialization_failed", error=str(e))
        raise


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("api_shutdown")

# ============================================
# HEALTH CHECK
# ============================================

@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "version": __version__,
        "mode": os.getenv("SPRINTFLOW_MODE", "local")
    }

# ============================================
# SPRINTS
# ============================================

@app.get("/projects/{project_id}/sprints", response_model=List[SprintRead])
def list_sprints(
    project_id: UUID,
    user_id: UUID = Depends(get_user_id),
    controller: SprintLifecycleController = Depends(get_controller),
):
    return [SprintRead.model_validate(sprint) for sprint in controller.list_sprints(project_id)]


@app.post("/projects/{project_id}/sprints", response_model=SprintRead, status_code=201)
def create_sprint(
    project_id: UUID,
    request: CreateSprintRequest,
    user_id: UUID = Depends(require_sprint_manager),
    controller: SprintLifecycleController = Depends(get_controller),
):
    sprint = controller.create_sprint(
        project_id,
        user_id,
        name=request.name,
        goal=request.goal,
        start_date=request.start_date,
        end_date=request.end_date,
        budget=request.budget,
    )
    return SprintRead.model_validate(sprint)


@app.get("/projects/{project_id}/sprints/{sprint_id}", response_model=SprintRead)
def get_sprint(
    project_id: UUID,
    sprint_id: UUID,
    user_id: UUID = Depends(get_user_id),
    controller: SprintLifecycleController = Depends(get_controller),
):
    return SprintRead.model_validate(controller.get_sprint(project_id, sprint_id))


@app.patch("/projects/{project_id}/sprints/{sprint_id}", response_model=SprintRead)
def update_sprint(
    project_id: UUID,
    sprint_id: UUID,
    request: UpdateSprintRequest,
    user_id: UUID = Depends(require_sprint_manager),
    controller: SprintLifecycleController = Depends(get_controller),
):
    sprint = controller.update_sprint(project_id, sprint_id, user_id, **request.changes())
    return SprintRead.model_validate(sprint)


@app.delete("/projects/{project_id}/sprints/{sprint_id}")
def delete_sprint(
    project_id: UUID,
    sprint_id: UUID,
    user_id: UUID = Depends(require_sprint_manager),
    controller: SprintLifecycleController = Depends(get_controller),
):
    """Only planning sprints can be deleted; their tickets go back to the backlog."""
    unassigned = controller.delete_sprint(project_id, sprint_id, user_id)
    return {"success": True, "unassigned_ticket_ids": [str(ticket_id) for ticket_id in unassigned]}


@app.post("/projects/{project_id}/sprints/{sprint_id}/start", response_model=SprintRead)
def start_sprint(
    project_id: UUID,
    sprint_id: UUID,
    request: StartSprintRequest = None,
    user_id: UUID = Depends(require_sprint_manager),
    controller: SprintLifecycleController = Depends(get_controller),
):
    request = request or StartSprintRequest()
    sprint = controller.start(project_id, sprint_id, user_id, request.start_date, request.end_date)
    return SprintRead.model_validate(sprint)


@app.post("/projects/{project_id}/sprints/{sprint_id}/complete", response_model=CompleteSprintResponse)
def complete_sprint(
    project_id: UUID,
    sprint_id: UUID,
    request: CompleteSprintRequest,
    user_id: UUID = Depends(require_sprint_manager),
    controller: SprintLifecycleController = Depends(get_controller),
):
    result = controller.complete(
        project_id,
        sprint_id,
        user_id,
        action=request.action,
        target_sprint_id=request.target_sprint_id,
        create_next_sprint=request.create_next_sprint,
        done_column_ids=request.done_column_ids,
    )
    return CompleteSprintResponse(
        sprint=SprintRead.model_validate(result.sprint),
        ticket_disposition=TicketDispositionRead(
            completed=result.disposition.completed,
            moved_to_backlog=result.disposition.moved_to_backlog,
            carried_over=result.disposition.carried_over,
        ),
        next_sprint=SprintRead.model_validate(result.next_sprint) if result.next_sprint else None,
    )


@app.post("/projects/{project_id}/sprints/{sprint_id}/reopen", response_model=SprintRead)
def reopen_sprint(
    project_id: UUID,
    sprint_id: UUID,
    user_id: UUID = Depends(require_sprint_manager),
    controller: SprintLifecycleController = Depends(get_controller),
):
    return SprintRead.model_validate(controller.reopen(project_id, sprint_id, user_id))


@app.post("/projects/{project_id}/sprints/{sprint_id}/extend", response_model=SprintRead)
def extend_sprint(
    project_id: UUID,
    sprint_id: UUID,
    request: ExtendSprintRequest,
    user_id: UUID = Depends(require_sprint_manager),
    controller: SprintLifecycleController = Depends(get_controller),
):
    sprint = controller.extend(project_id, sprint_id, user_id, request.days, request.new_end_date)
    return SprintRead.model_validate(sprint)


@app.get("/projects/{project_id}/sprints/{sprint_id}/burndown", response_model=BurndownRead)
def sprint_burndown(
    project_id: UUID,
    sprint_id: UUID,
    unit: BurndownUnit = Query(BurndownUnit.POINTS),
    user_id: UUID = Depends(get_user_id),
    controller: SprintLifecycleController = Depends(get_controller),
):
    sprint, points = controller.burndown(project_id, sprint_id, unit)
    return BurndownRead(
        sprint=SprintRead.model_validate(sprint),
        unit=unit,
        data_points=[BurndownPoint(**point) for point in points],
    )

# ============================================
# SETTINGS & HISTORY
# ============================================

@app.get("/projects/{project_id}/sprint-settings", response_model=SprintSettingsRead)
def get_sprint_settings(
    project_id: UUID,
    user_id: UUID = Depends(get_user_id),
    controller: SprintLifecycleController = Depends(get_controller),
):
    current = controller.get_settings(project_id)
    return SprintSettingsRead(
        default_sprint_duration=current.default_sprint_duration,
        done_column_ids=current.done_column_ids,
    )


@app.patch("/projects/{project_id}/sprint-settings", response_model=SprintSettingsRead)
def update_sprint_settings(
    project_id: UUID,
    request: UpdateSprintSettingsRequest,
    user_id: UUID = Depends(require_sprint_manager),
    controller: SprintLifecycleController = Depends(get_controller),
):
    updated = controller.update_settings(project_id, request.default_sprint_duration, request.done_column_ids)
    return SprintSettingsRead(
        default_sprint_duration=updated.default_sprint_duration,
        done_column_ids=updated.done_column_ids,
    )


@app.get("/tickets/{ticket_id}/sprint-history", response_model=List[HistoryEntryRead])
def ticket_sprint_history(
    ticket_id: UUID,
    user_id: UUID = Depends(get_user_id),
    controller: SprintLifecycleController = Depends(get_controller),
):
    return [HistoryEntryRead.model_validate(entry) for entry in controller.ticket_history(ticket_id)]
