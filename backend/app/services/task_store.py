"""
任务存储服务 — 任务 CRUD + 执行记录追加/查询
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.models.task import HttpTask, TaskLog
from app.models.task_definition import DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class TaskStore:
    """定时任务持久化服务"""

    def __init__(self, db: Session):
        self.db = db

    # ── 任务 ──────────────────────────────────────────

    def list_tasks(self) -> List[HttpTask]:
        """获取任务列表（按 ID 倒序，预加载执行记录，记录按时间倒序）"""
        return (
            self.db.query(HttpTask)
            .options(selectinload(HttpTask.logs))
            .order_by(HttpTask.id.desc())
            .all()
        )

    def get_task(self, task_id: int) -> Optional[HttpTask]:
        """获取任务详情"""
        return self.db.query(HttpTask).filter(HttpTask.id == task_id).first()

    def create_task(
        self,
        name: str,
        cron_expr: str,
        url: str,
        method: str = "GET",
        headers: Optional[str] = None,
        body: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> HttpTask:
        """创建定时任务（超时未设置或非正数时使用默认值）"""
        if not timeout or timeout <= 0:
            timeout = DEFAULT_TIMEOUT_SECONDS

        task = HttpTask(
            name=name,
            cron_expr=cron_expr,
            url=url,
            method=method,
            headers=headers,
            body=body,
            timeout=timeout,
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)
        return task

    def delete_task(self, task_id: int) -> bool:
        """删除定时任务（级联删除执行记录）"""
        task = self.get_task(task_id)
        if not task:
            return False

        self.db.delete(task)
        self.db.commit()
        return True

    # ── 执行记录 ──────────────────────────────────────

    def append_execution_record(
        self,
        task_id: int,
        status_text: str,
        response_body: str = "",
    ) -> TaskLog:
        """追加一条执行记录"""
        log = TaskLog(
            task_id=task_id,
            time=datetime.now(),
            status_text=status_text,
            response_body=response_body or "",
        )
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)
        return log

    def get_task_logs(self, task_id: int, limit: int = 50) -> List[TaskLog]:
        """获取任务执行记录（按时间倒序）"""
        return (
            self.db.query(TaskLog)
            .filter(TaskLog.task_id == task_id)
            .order_by(TaskLog.time.desc(), TaskLog.id.desc())
            .limit(limit)
            .all()
        )


class DatabaseRecordSink:
    """执行记录落库 — 每条记录使用独立会话，可在分发线程中调用"""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def append(self, task_id: int, status_text: str, response_body: str = "") -> None:
        db = self._session_factory()
        try:
            TaskStore(db).append_execution_record(task_id, status_text, response_body)
        except IntegrityError as e:
            # 执行期间任务已被删除，记录无主可挂
            db.rollback()
            logger.warning(f"Task #{task_id} no longer exists, dropping execution record: {e.orig}")
        finally:
            db.close()
