"""
调度器接口 — 域无关的定时触发抽象

app 层通过实现 ITriggerEngine 来对接具体调度框架（APScheduler 等）。
"""
from core.scheduler.base import EntryHandle, ITriggerEngine
from core.scheduler.cron import InvalidCronExpression, parse_cron_expression

__all__ = [
    "EntryHandle",
    "ITriggerEngine",
    "InvalidCronExpression",
    "parse_cron_expression",
]
