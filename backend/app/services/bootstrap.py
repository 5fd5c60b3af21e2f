"""
启动加载 — 从数据库读取全部任务并注册到运行时
"""
import logging

from app.models.task_definition import TaskDefinition
from app.services.task_runtime import TaskRuntime
from app.services.task_store import TaskStore

logger = logging.getLogger(__name__)


def load_tasks(store: TaskStore, runtime: TaskRuntime) -> int:
    """启动时加载所有任务；cron 非法的任务仍以"已定义未调度"状态载入

    Returns:
        载入的任务数
    """
    tasks = store.list_tasks()
    scheduled = 0
    for task in tasks:
        # 每个任务注册独立的定义副本
        if runtime.register_task(TaskDefinition.from_model(task)):
            scheduled += 1
    logger.info(f"Loaded {len(tasks)} tasks from database ({scheduled} scheduled)")
    return len(tasks)
