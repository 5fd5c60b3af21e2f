# Task Services
from app.services.dispatcher import HttpDispatcher, ExecutionResult
from app.services.scheduler_backend import APSchedulerBackend
from app.services.task_registry import TaskRegistry
from app.services.task_runtime import TaskRuntime
from app.services.task_store import TaskStore, DatabaseRecordSink

__all__ = [
    'HttpDispatcher', 'ExecutionResult', 'APSchedulerBackend',
    'TaskRegistry', 'TaskRuntime', 'TaskStore', 'DatabaseRecordSink'
]
