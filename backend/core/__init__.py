"""
core - 定时触发框架层

独立于具体业务的调度抽象，包含：
- scheduler: 触发引擎接口（ITriggerEngine）与 cron 表达式解析

使用方式:
    >>> from core.scheduler import ITriggerEngine, parse_cron_expression
    >>> trigger = parse_cron_expression("*/5 * * * * *")
"""

from core.scheduler import (
    EntryHandle,
    ITriggerEngine,
    InvalidCronExpression,
    parse_cron_expression,
)

__version__ = "1.0.0"

__all__ = [
    "EntryHandle",
    "ITriggerEngine",
    "InvalidCronExpression",
    "parse_cron_expression",
]
