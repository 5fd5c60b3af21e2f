"""
定时任务管理 API
前缀: /api/tasks
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.task import HttpTask
from app.models.task_definition import TaskDefinition
from app.services.task_runtime import TaskRuntime
from app.services.task_store import TaskStore

router = APIRouter(prefix="/api/tasks", tags=["定时任务"])

TASK_NOT_FOUND = "任务不存在"


def get_runtime(request: Request) -> TaskRuntime:
    """依赖注入：获取应用持有的任务运行时"""
    return request.app.state.runtime


# ── Pydantic Schemas ──────────────────────────────────

class TaskCreate(BaseModel):
    name: str = ""
    cron: str = ""
    url: str = ""
    method: str = "GET"
    headers: Optional[str] = None
    body: Optional[str] = None
    timeout: Optional[int] = None


class TaskLogResponse(BaseModel):
    id: int
    task_id: int
    time: datetime
    status_text: str
    response_body: str

    model_config = ConfigDict(from_attributes=True)


class TaskResponse(BaseModel):
    id: int
    name: str
    cron: str
    url: str
    method: str
    headers: Optional[str]
    body: Optional[str]
    timeout: int
    next_run: Optional[datetime] = None
    logs: List[TaskLogResponse] = []
    warning: Optional[str] = None


class MessageResponse(BaseModel):
    message: str


def _to_response(
    task: HttpTask,
    next_run: Optional[datetime],
    logs: Optional[list] = None,
    warning: Optional[str] = None,
) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        name=task.name,
        cron=task.cron_expr,
        url=task.url,
        method=task.method,
        headers=task.headers,
        body=task.body,
        timeout=task.timeout,
        next_run=next_run,
        logs=[TaskLogResponse.model_validate(log) for log in (logs or [])],
        warning=warning,
    )


# ── Endpoints ─────────────────────────────────────────

@router.get("", response_model=List[TaskResponse])
def list_tasks(
    db: Session = Depends(get_db),
    runtime: TaskRuntime = Depends(get_runtime),
):
    """获取任务列表（附带下一次执行时间和最近执行记录）"""
    tasks = TaskStore(db).list_tasks()
    next_runs = runtime.current_next_fire_times(task.id for task in tasks)
    return [
        _to_response(task, next_runs.get(task.id), task.logs[: settings.LOG_PREVIEW_LIMIT])
        for task in tasks
    ]


@router.post("", response_model=TaskResponse)
def create_task(
    body: TaskCreate,
    db: Session = Depends(get_db),
    runtime: TaskRuntime = Depends(get_runtime),
):
    """创建定时任务并立即注册到调度器"""
    if not body.name.strip() or not body.cron.strip() or not body.url.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="任务名称、Cron表达式和URL是必填项",
        )

    task = TaskStore(db).create_task(
        name=body.name.strip(),
        cron_expr=body.cron.strip(),
        url=body.url.strip(),
        method=(body.method or "GET").strip().upper(),
        headers=body.headers,
        body=body.body,
        timeout=body.timeout,
    )

    warning = None
    if not runtime.register_task(TaskDefinition.from_model(task)):
        warning = f"Cron表达式无效，任务未调度: '{task.cron_expr}'"
    return _to_response(task, runtime.current_next_fire_time(task.id), warning=warning)


@router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    runtime: TaskRuntime = Depends(get_runtime),
):
    """删除任务（先停止调度，再删除任务及其执行记录）"""
    store = TaskStore(db)
    if store.get_task(task_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TASK_NOT_FOUND)

    runtime.unregister_task(task_id)
    store.delete_task(task_id)
    return {"message": "任务已删除"}


@router.post("/{task_id}/run", response_model=MessageResponse)
def run_task(
    task_id: int,
    db: Session = Depends(get_db),
    runtime: TaskRuntime = Depends(get_runtime),
):
    """立即执行一次任务（后台执行，不等待结果）"""
    if TaskStore(db).get_task(task_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TASK_NOT_FOUND)

    runtime.dispatch_now(task_id)
    return {"message": "任务已在后台立即执行"}


@router.get("/{task_id}/logs", response_model=List[TaskLogResponse])
def get_task_logs(
    task_id: int,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """获取任务执行记录（按时间倒序）"""
    store = TaskStore(db)
    if store.get_task(task_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TASK_NOT_FOUND)
    return store.get_task_logs(task_id, limit=limit)
