"""FastAPI アプリケーション - オペレーター向け REST API エンドポイント"""
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from application.ports.logger import LoggerPort
from application.services.process_manager import ProcessManager
from application.services.work_plan_validator import WorkPlanValidatorService
from domain.exceptions import RunStateError, ValidationError
from domain.run_record import RunRecord, RunStatus
from domain.work_plan import WorkPlan
from infrastructure.bootstrap import build_controller_factory
from infrastructure.config.settings import Settings
from infrastructure.logging.composite_logger import CompositeLogger
from infrastructure.logging.console_logger import ConsoleLogger
from infrastructure.logging.run_log_logger import RunLogLogger
from infrastructure.plan.base_loader import PlanLoadError
from infrastructure.plan.file_finder import PlanFileFinder
from infrastructure.plan.loader_registry import PlanLoaderRegistry
from infrastructure.run.in_memory_run_log_store import InMemoryRunLogStore
from infrastructure.run.in_memory_run_repository import InMemoryRunRepository
from infrastructure.run.in_memory_run_scheduler import InMemoryRunScheduler


# リクエストモデル
class RunPlanRequest(BaseModel):
    """プラン実行リクエスト"""
    items: Optional[List[str]] = Field(
        default=None,
        description="Labels of the items to run. All items when omitted.",
    )
    max_retries: Optional[int] = Field(default=None, ge=0, description="Override max_retries for every item")
    caching: Optional[bool] = Field(default=None, description="Override caching for every item")


class ErrorDetailResponse(BaseModel):
    """Structured error detail"""
    code: str = Field(description="Error code")
    message: str = Field(description="Error message")
    exit_status: Optional[int] = Field(default=None, description="Controller exit status")
    last_status: Optional[int] = Field(default=None, description="Status of the last attempt")
    decisions: List[Dict[str, Any]] = Field(default_factory=list, description="Handler decisions in order")


class RunStatusResponse(BaseModel):
    """Run status response"""
    run_id: str = Field(description="Run identifier")
    plan_id: str = Field(description="Plan identifier")
    item: str = Field(description="Work item label")
    status: str = Field(description="Run status")
    result: Optional[Dict[str, Any]] = Field(default=None, description="Run result")
    error: Optional[str] = Field(default=None, description="Run error")
    error_detail: Optional[ErrorDetailResponse] = Field(default=None, description="Structured error detail")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Update timestamp")


class RunPlanResponse(BaseModel):
    """プラン実行レスポンス"""
    plan_id: str = Field(description="Plan identifier")
    success: Optional[bool] = Field(default=None, description="All runs succeeded (None while pending)")
    runs: List[RunStatusResponse] = Field(description="One entry per submitted item")
    links: Dict[str, str] = Field(default_factory=dict, description="Related resources")


class RunLogEntryResponse(BaseModel):
    """Run log entry"""
    timestamp: datetime = Field(description="Log timestamp")
    level: str = Field(description="Log level")
    event: str = Field(description="Log event name")
    fields: Dict[str, Any] = Field(description="Log payload")


# FastAPIアプリケーション
app = FastAPI(
    title="Relaunch Process Controller",
    description="自動リスタート付き計算ワークフローの実行とキャッシュ",
    version="1.0.0",
)

# 設定
SETTINGS = Settings.from_env()
PLANS_DIR = SETTINGS.plans_dir
RUN_REPOSITORY = InMemoryRunRepository()
RUN_LOG_STORE = InMemoryRunLogStore()
RUN_SCHEDULER = InMemoryRunScheduler(max_workers=SETTINGS.engine_workers)
MAX_WAIT_SEC = 60


def _build_logger(run_id: str) -> LoggerPort:
    return CompositeLogger(
        [
            ConsoleLogger(),
            RunLogLogger(run_id=run_id, log_store=RUN_LOG_STORE),
        ]
    )


CONTROLLER_FACTORY = build_controller_factory(SETTINGS, ConsoleLogger())
PROCESS_MANAGER = ProcessManager(
    CONTROLLER_FACTORY,
    RUN_REPOSITORY,
    RUN_SCHEDULER,
    lambda run_id: _build_logger(run_id),
)


@app.get("/")
def read_root():
    """ヘルスチェック"""
    return {"status": "ok", "service": "relaunch"}


def _load_plan(plan_id: str) -> WorkPlan:
    finder = PlanFileFinder(PLANS_DIR)
    plan_file = finder.find_by_id(plan_id)

    if plan_file is None:
        raise HTTPException(
            status_code=404,
            detail=f"Plan file not found: {plan_id}",
        )

    registry = PlanLoaderRegistry()
    loader = registry.get_loader(plan_file)
    return loader.load_from_file(plan_file)


def _apply_request(plan: WorkPlan, request: RunPlanRequest) -> WorkPlan:
    items = plan.items
    if request.items is not None:
        known = {item.label for item in items}
        unknown = [label for label in request.items if label not in known]
        if unknown:
            raise ValidationError(f"Unknown item labels: {', '.join(unknown)}")
        items = [item for item in items if item.label in request.items]

    overrides: Dict[str, Any] = {}
    if request.max_retries is not None:
        overrides["max_retries"] = request.max_retries
    if request.caching is not None:
        overrides["caching"] = request.caching
    if overrides:
        items = [replace(item, **overrides) for item in items]
    return replace(plan, items=items)


def _to_status_response(record: RunRecord) -> RunStatusResponse:
    error_detail = (
        ErrorDetailResponse(**record.error_detail) if record.error_detail else None
    )
    return RunStatusResponse(
        run_id=record.run_id,
        plan_id=record.plan_id,
        item=record.item_label,
        status=record.status.value,
        result=record.result,
        error=record.error,
        error_detail=error_detail,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _require_record(run_id: str) -> RunRecord:
    record = PROCESS_MANAGER.get(run_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return record


@app.post("/plans/{plan_id}/runs", response_model=RunPlanResponse)
def run_plan(
    plan_id: str,
    request: Optional[RunPlanRequest] = None,
    wait_sec: Optional[int] = Query(default=None, ge=0),
):
    """
    指定されたプランの各ワークアイテムを投入する

    Args:
        plan_id: プランID（例: "eos_silicon"）
        request: 実行リクエスト（items, max_retries, caching）
        wait_sec: 完了を待つ秒数。未指定または0なら202を即時返却

    Returns:
        投入したランの一覧
    """
    logger = ConsoleLogger()

    if wait_sec is not None and wait_sec > MAX_WAIT_SEC:
        raise HTTPException(
            status_code=400,
            detail=f"wait_sec must be <= {MAX_WAIT_SEC}",
        )

    try:
        plan = _apply_request(_load_plan(plan_id), request or RunPlanRequest())
        # Reason: Reject broken plans before anything is queued.
        # Impact: Invalid plans return HTTP 400 and no run records are created.
        WorkPlanValidatorService.default().validate(plan)
        logger.info("plan.submit", plan_id=plan_id, items=len(plan.items))
        run_ids = PROCESS_MANAGER.submit_plan(plan)
    except (ValidationError, PlanLoadError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    finished = bool(wait_sec) and all(PROCESS_MANAGER.wait(run_id, wait_sec) for run_id in run_ids)
    records = [_require_record(run_id) for run_id in run_ids]
    finished = finished and all(r.status.is_terminal for r in records)

    response = RunPlanResponse(
        plan_id=plan_id,
        success=all(r.status == RunStatus.SUCCEEDED for r in records) if finished else None,
        runs=[_to_status_response(r) for r in records],
        links={run_id: f"/runs/{run_id}" for run_id in run_ids},
    )
    if finished:
        return response
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=response.model_dump(mode="json"),
    )


@app.get("/runs", response_model=List[RunStatusResponse])
def list_runs(
    status_filter: Optional[RunStatus] = Query(default=None, alias="status"),
    plan_id: Optional[str] = None,
) -> List[RunStatusResponse]:
    """ラン一覧（status, plan_id で絞り込み）"""
    return [_to_status_response(r) for r in PROCESS_MANAGER.list(status_filter, plan_id)]


@app.get("/runs/{run_id}", response_model=RunStatusResponse)
def get_run_status(run_id: str) -> RunStatusResponse:
    return _to_status_response(_require_record(run_id))


@app.get("/runs/{run_id}/logs", response_model=List[RunLogEntryResponse])
def get_run_logs(run_id: str, min_level: Optional[str] = None) -> List[RunLogEntryResponse]:
    _require_record(run_id)
    entries = RUN_LOG_STORE.list(run_id, min_level=min_level)
    return [
        RunLogEntryResponse(
            timestamp=entry.timestamp,
            level=entry.level,
            event=entry.event,
            fields=entry.fields,
        )
        for entry in entries
    ]


@app.post("/runs/{run_id}/play", response_model=RunStatusResponse)
def play_run(run_id: str) -> RunStatusResponse:
    """一時停止中のランを再開する"""
    _require_record(run_id)
    try:
        record = PROCESS_MANAGER.play(run_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    except RunStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _to_status_response(record)


@app.post("/runs/{run_id}/kill", response_model=RunStatusResponse)
def kill_run(run_id: str) -> RunStatusResponse:
    """ランをキャンセルする（実行中の試行は完了を待つ）"""
    _require_record(run_id)
    try:
        record = PROCESS_MANAGER.kill(run_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    except RunStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _to_status_response(record)
