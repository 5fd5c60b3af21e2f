"""
任务运行时 — 触发引擎 + 注册表 + 分发器的组装

由应用在启动时创建并挂在 app.state 上，路由层和启动加载器通过引用使用，
不存在进程级全局注册表。
"""
import logging
from concurrent.futures import Future
from datetime import datetime
from typing import Dict, Iterable, Optional

import httpx

from app.models.task_definition import TaskDefinition
from app.services.dispatcher import ExecutionRecordSink, HttpDispatcher
from app.services.task_registry import TaskRegistry
from core.scheduler import ITriggerEngine

logger = logging.getLogger(__name__)


class TaskRuntime:
    """定时 HTTP 任务运行时"""

    def __init__(
        self,
        engine: ITriggerEngine,
        sink: ExecutionRecordSink,
        max_workers: int = 32,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.engine = engine
        self.registry = TaskRegistry(engine, on_fire=self.dispatch_now)
        self.dispatcher = HttpDispatcher(
            self.registry.get, sink, max_workers=max_workers, transport=transport
        )

    def start(self) -> None:
        """启动触发引擎"""
        self.engine.start()

    def shutdown(self, wait: bool = False) -> None:
        """停止触发引擎和分发线程池（不取消正在执行的请求）"""
        self.engine.shutdown()
        self.dispatcher.shutdown(wait=wait)
        logger.info("Task runtime shut down")

    def register_task(self, definition: TaskDefinition) -> bool:
        """注册任务，返回是否已调度"""
        return self.registry.register(definition)

    def unregister_task(self, task_id: int) -> bool:
        """注销任务，停止后续定时触发"""
        return self.registry.unregister(task_id)

    def dispatch_now(self, task_id: int) -> Future:
        """异步执行一次任务（定时触发与立即执行共用）"""
        return self.dispatcher.submit(task_id)

    def current_next_fire_time(self, task_id: int) -> Optional[datetime]:
        """下一次触发时间，未调度时返回 None"""
        return self.registry.next_fire_time(task_id)

    def current_next_fire_times(self, task_ids: Iterable[int]) -> Dict[int, Optional[datetime]]:
        """批量获取下一次触发时间（一次加锁）"""
        return self.registry.next_fire_times(task_ids)
