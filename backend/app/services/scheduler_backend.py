"""
APScheduler 触发引擎 — 实现 core 层 ITriggerEngine 接口
"""
import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from core.scheduler import EntryHandle, ITriggerEngine, parse_cron_expression

logger = logging.getLogger(__name__)


class APSchedulerBackend(ITriggerEngine):
    """基于 APScheduler 的秒级触发引擎"""

    def __init__(
        self,
        scheduler: Optional[BackgroundScheduler] = None,
        timezone: Optional[str] = None,
        misfire_grace_time: int = 1,
    ):
        if scheduler is None:
            scheduler = BackgroundScheduler(timezone=timezone) if timezone else BackgroundScheduler()
        self._scheduler = scheduler
        self._misfire_grace_time = misfire_grace_time

    @property
    def scheduler(self) -> BackgroundScheduler:
        return self._scheduler

    def start(self) -> None:
        """启动调度器"""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("APScheduler started")

    def shutdown(self) -> None:
        """关闭调度器"""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("APScheduler shut down")

    def add_entry(self, cron_expr: str, callback: Callable[[], None]) -> EntryHandle:
        """按 cron 表达式添加条目，表达式非法时抛出 InvalidCronExpression"""
        trigger = parse_cron_expression(cron_expr, timezone=self._scheduler.timezone)
        job = self._scheduler.add_job(
            callback,
            trigger=trigger,
            id=uuid.uuid4().hex,
            misfire_grace_time=self._misfire_grace_time,
            coalesce=True,
        )
        logger.debug(f"Entry added: {job.id} ({cron_expr})")
        return job.id

    def remove_entry(self, handle: EntryHandle) -> None:
        """移除条目"""
        try:
            self._scheduler.remove_job(handle)
            logger.debug(f"Entry removed: {handle}")
        except JobLookupError:
            logger.warning(f"Entry not found for removal: {handle}")

    def next_fire_time(self, handle: EntryHandle) -> Optional[datetime]:
        """获取下一次触发时间"""
        job = self._scheduler.get_job(handle)
        if job is None:
            return None
        if job.pending:
            # 调度器尚未启动，按触发器推算
            now = datetime.now(self._scheduler.timezone)
            return job.trigger.get_next_fire_time(None, now)
        return job.next_run_time

    def entry_count(self) -> int:
        return len(self._scheduler.get_jobs())
