# Task Models
from app.models.task import HttpTask, TaskLog
from app.models.task_definition import TaskDefinition

__all__ = ['HttpTask', 'TaskLog', 'TaskDefinition']
