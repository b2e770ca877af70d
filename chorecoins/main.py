from fastapi import FastAPI, Depends, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import logging
from pathlib import Path

from chorecoins.database import engine, get_db, Base
from chorecoins import models  # Import all models to register them with Base
from chorecoins.schemas import (
    Actor,
    TaskTemplateCreate, TaskTemplateResponse, TemplateReconcile, TemplateReconcileResult,
    TaskScheduleCreate, TaskStatusUpdate, TaskQuery, TaskResponse, TaskListResponse,
    MaterializeResponse,
    TransactionCreate, TransactionResponse, CoinStatsResponse,
    NotificationResponse, ReconciliationResult,
    SettingsUpdate, SettingsResponse
)
from chorecoins.auth import verify_api_key, get_actor
from chorecoins.clock import Clock, SystemClock
from chorecoins.exceptions import ChoreCoinsException, ForbiddenException
from chorecoins.repositories.settings_repository import SettingsRepository
from chorecoins.services.task_service import TaskService
from chorecoins.services.transition_service import TransitionService
from chorecoins.services.template_service import TemplateService
from chorecoins.services.ledger_service import LedgerService
from chorecoins.services.notification_service import NotificationService
from chorecoins.services.reconciliation_service import ReconciliationService
from chorecoins.services.scheduler_service import start_scheduler, stop_scheduler
from chorecoins.constants import (
    Difficulty, TaskStatus,
    DEFAULT_LOG_DIRECTORY_DEV, DEFAULT_PAGE_LIMIT, LOG_DIR, LOG_FILE, CORS_ALLOWED_ORIGINS
)

# Create log directory if it doesn't exist (for development)
try:
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE
except PermissionError:
    # Fallback to local directory if no permissions for /var/log
    Path(DEFAULT_LOG_DIRECTORY_DEV).mkdir(parents=True, exist_ok=True)
    log_path = Path(DEFAULT_LOG_DIRECTORY_DEV) / LOG_FILE

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_path),
        logging.StreamHandler()  # Also log to console
    ]
)

logger = logging.getLogger("chorecoins")

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Chore Coins API",
    description="Recurring chores for children, approved by parents and paid in coins",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_clock() -> Clock:
    """Clock used by request handlers"""
    return SystemClock()


@app.exception_handler(ChoreCoinsException)
async def chorecoins_exception_handler(request: Request, exc: ChoreCoinsException):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"kind": exc.kind, "detail": exc.message}
    )


@app.exception_handler(PydanticValidationError)
async def pydantic_validation_handler(request: Request, exc: PydanticValidationError):
    # Models built inside handlers (e.g. TaskQuery) rather than by FastAPI
    errors = "; ".join(
        f"{'.'.join(str(p) for p in error['loc']) or 'request'}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"kind": "validation_error", "detail": errors}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"kind": "internal", "detail": "Internal server error"}
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    logger.info(f"Chore Coins API started. Logging to: {log_path}")
    start_scheduler()


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Chore Coins API")
    stop_scheduler()


# Health check (no auth required)
@app.get("/")
async def root():
    return {"message": "Chore Coins API", "status": "active"}


# Templates
@app.post("/api/templates", response_model=TaskTemplateResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
async def create_template(
    template: TaskTemplateCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Create a reusable chore template"""
    return TemplateService(db).create_template(actor, template)


@app.get("/api/templates", response_model=List[TaskTemplateResponse], dependencies=[Depends(verify_api_key)])
async def get_templates(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Templates visible to the caller"""
    return TemplateService(db).list_templates(actor)


@app.get("/api/templates/{template_id}", response_model=TaskTemplateResponse, dependencies=[Depends(verify_api_key)])
async def get_template(template_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return TemplateService(db).get_template(actor, template_id)


@app.put("/api/templates/{template_id}", response_model=TemplateReconcileResult, dependencies=[Depends(verify_api_key)])
async def update_template(
    template_id: str,
    changes: TemplateReconcile,
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """Edit template fields and/or reconcile a child's schedule for it"""
    return TemplateService(db, clock).reconcile_template(template_id, actor, changes)


# Tasks
@app.post("/api/tasks", response_model=MaterializeResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
async def create_tasks(
    schedule: TaskScheduleCreate,
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """Assign a template to a child on the given dates"""
    tasks = TaskService(db, clock).materialize_tasks(actor, schedule)
    return {"created": len(tasks), "tasks": tasks}


@app.get("/api/tasks", response_model=TaskListResponse, dependencies=[Depends(verify_api_key)])
async def get_tasks(
    status_filter: Optional[TaskStatus] = None,
    difficulty: Optional[Difficulty] = None,
    due_date_from: Optional[date] = None,
    due_date_to: Optional[date] = None,
    child_id: Optional[str] = None,
    template_id: Optional[str] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Get tasks with optional filtering and pagination"""
    query = TaskQuery(
        status=status_filter,
        difficulty=difficulty,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        child_id=child_id,
        template_id=template_id,
        page=page,
        limit=limit,
    )
    return TaskService(db).list_tasks(actor, query)


@app.get("/api/tasks/{task_id}", response_model=TaskResponse, dependencies=[Depends(verify_api_key)])
async def get_task(task_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return TaskService(db).get_task(actor, task_id)


@app.put("/api/tasks/{task_id}/status", response_model=TaskResponse, dependencies=[Depends(verify_api_key)])
async def update_task_status(
    task_id: str,
    update: TaskStatusUpdate,
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """Complete, approve or reject a task"""
    return TransitionService(db, clock).transition(task_id, update.status, actor, update.reason)


@app.delete("/api/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(verify_api_key)])
async def delete_task(task_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    TaskService(db).delete_task(actor, task_id)
    return None


# Coins
def _check_can_view_child(actor: Actor, child_id: str) -> None:
    if actor.is_child and actor.id != child_id:
        raise ForbiddenException("Children can only view their own coins")


@app.get("/api/children/{child_id}/coins", response_model=CoinStatsResponse, dependencies=[Depends(verify_api_key)])
async def get_coins(child_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Current balance and lifetime earnings of a child"""
    _check_can_view_child(actor, child_id)
    return LedgerService(db).get_coin_stats(child_id)


@app.get("/api/children/{child_id}/transactions", response_model=List[TransactionResponse], dependencies=[Depends(verify_api_key)])
async def get_transactions(child_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    _check_can_view_child(actor, child_id)
    return LedgerService(db).get_history(child_id)


@app.post("/api/children/{child_id}/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED, dependencies=[Depends(verify_api_key)])
async def create_transaction(
    child_id: str,
    transaction: TransactionCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Parent credits coins to, or spends coins of, a child"""
    if not actor.is_parent:
        raise ForbiddenException("Only parents can add coin transactions")
    return LedgerService(db).record_and_commit(
        child_id, transaction.amount, transaction.type, transaction.description
    )


# Notifications
@app.get("/api/notifications", response_model=List[NotificationResponse], dependencies=[Depends(verify_api_key)])
async def get_notifications(
    unread_only: bool = False,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return NotificationService(db).get_for_recipient(actor.type.value, actor.id, unread_only)


@app.post("/api/notifications/{notification_id}/read", response_model=NotificationResponse, dependencies=[Depends(verify_api_key)])
async def mark_notification_read(
    notification_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return NotificationService(db).mark_read(notification_id, actor.type.value, actor.id)


# Settings
def _settings_response(settings, clock: Clock) -> SettingsResponse:
    response = SettingsResponse.model_validate(settings)
    response.effective_date = clock.today()
    return response


@app.get("/api/settings", response_model=SettingsResponse, dependencies=[Depends(verify_api_key)])
async def get_settings_endpoint(clock: Clock = Depends(get_clock), db: Session = Depends(get_db)):
    """Get application settings"""
    settings = SettingsRepository.get(db)
    db.commit()
    return _settings_response(settings, clock)


@app.put("/api/settings", response_model=SettingsResponse, dependencies=[Depends(verify_api_key)])
async def update_settings_endpoint(
    settings_update: SettingsUpdate,
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """Update application settings"""
    if not actor.is_admin:
        raise ForbiddenException("Only admins can change settings")
    settings = SettingsRepository.get(db)
    for field, value in settings_update.model_dump(exclude_unset=True).items():
        setattr(settings, field, value)
    settings = SettingsRepository.update(db, settings)
    logger.info(f"Settings updated by admin {actor.id}")
    return _settings_response(settings, clock)


# Reconciliation
@app.post("/api/reconciliation/run", response_model=ReconciliationResult, dependencies=[Depends(verify_api_key)])
async def run_reconciliation(
    actor: Actor = Depends(get_actor),
    clock: Clock = Depends(get_clock),
    db: Session = Depends(get_db)
):
    """Run the daily reconciliation now"""
    if not actor.is_admin:
        raise ForbiddenException("Only admins can run reconciliation")
    return ReconciliationService(db, clock).run_daily_reconciliation()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chorecoins.main:app", host="0.0.0.0", port=8000, reload=False)
