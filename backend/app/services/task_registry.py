"""
任务注册表 — 任务定义与触发引擎句柄的内存映射

两张映射表（ID → 定义、ID → 句柄）由同一把互斥锁保护：
    - 句柄表中存在某 ID，当且仅当注册时其 cron 表达式合法
    - 定义存在但句柄缺失的任务为"已定义未调度"，仍可立即执行
    - 每个 ID 至多一个句柄，重新注册时先释放旧句柄
持锁期间只做内存操作，不做任何网络或磁盘 I/O。
"""
import logging
import threading
from datetime import datetime
from functools import partial
from typing import Callable, Dict, Iterable, Optional

from app.models.task_definition import TaskDefinition
from core.scheduler import EntryHandle, ITriggerEngine, InvalidCronExpression

logger = logging.getLogger(__name__)


class TaskRegistry:
    """线程安全的任务注册表"""

    def __init__(self, engine: ITriggerEngine, on_fire: Callable[[int], object]):
        """
        Args:
            engine: 触发引擎
            on_fire: 定时触发时以任务ID调用，必须快速返回
        """
        self._engine = engine
        self._on_fire = on_fire
        self._definitions: Dict[int, TaskDefinition] = {}
        self._handles: Dict[int, EntryHandle] = {}
        self._lock = threading.Lock()

    def register(self, definition: TaskDefinition) -> bool:
        """
        注册（或覆盖）任务并按其 cron 表达式创建触发条目

        Returns:
            是否已调度；表达式非法时返回 False，任务保留为已定义未调度
        """
        with self._lock:
            self._definitions[definition.id] = definition
            previous = self._handles.pop(definition.id, None)
            if previous is not None:
                self._engine.remove_entry(previous)
            try:
                handle = self._engine.add_entry(
                    definition.cron_expr, partial(self._on_fire, definition.id)
                )
            except InvalidCronExpression as e:
                logger.warning(f"Task #{definition.id} ({definition.name}) left unscheduled: {e}")
                return False
            self._handles[definition.id] = handle

        logger.info(
            f"Task #{definition.id} ({definition.name}) registered, cron: '{definition.cron_expr}'"
        )
        return True

    def unregister(self, task_id: int) -> bool:
        """移除任务及其触发条目；未知ID为空操作。返回任务此前是否存在"""
        with self._lock:
            handle = self._handles.pop(task_id, None)
            if handle is not None:
                self._engine.remove_entry(handle)
            existed = self._definitions.pop(task_id, None) is not None

        if existed:
            logger.info(f"Task #{task_id} unregistered")
        return existed

    def get(self, task_id: int) -> Optional[TaskDefinition]:
        """获取任务当前定义"""
        with self._lock:
            return self._definitions.get(task_id)

    def next_fire_time(self, task_id: int) -> Optional[datetime]:
        """获取下一次触发时间，未调度时返回 None"""
        with self._lock:
            handle = self._handles.get(task_id)
            if handle is None:
                return None
            return self._engine.next_fire_time(handle)

    def next_fire_times(self, task_ids: Iterable[int]) -> Dict[int, Optional[datetime]]:
        """一次加锁批量获取下一次触发时间（列表接口使用）"""
        with self._lock:
            result: Dict[int, Optional[datetime]] = {}
            for task_id in task_ids:
                handle = self._handles.get(task_id)
                result[task_id] = self._engine.next_fire_time(handle) if handle is not None else None
            return result

    def is_scheduled(self, task_id: int) -> bool:
        with self._lock:
            return task_id in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._definitions)
