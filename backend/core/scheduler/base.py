"""
触发引擎接口 — 域无关的定时触发抽象

app 层通过实现 ITriggerEngine 来对接具体调度框架（APScheduler 等）。
引擎只负责"何时触发"，触发后做什么由注册方提供的回调决定。
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Hashable, Optional

# 引擎内部条目的不透明句柄
EntryHandle = Hashable


class ITriggerEngine(ABC):
    """触发引擎接口"""

    @abstractmethod
    def start(self) -> None:
        """启动引擎"""

    @abstractmethod
    def shutdown(self) -> None:
        """关闭引擎（不等待正在执行的回调）"""

    @abstractmethod
    def add_entry(self, cron_expr: str, callback: Callable[[], None]) -> EntryHandle:
        """按 cron 表达式添加一个定时条目

        Args:
            cron_expr: 六段式 cron 表达式（含秒）或 @ 描述符
            callback: 触发时调用的函数，必须快速返回

        Returns:
            条目句柄

        Raises:
            InvalidCronExpression: 表达式无法解析（不影响其他条目）
        """

    @abstractmethod
    def remove_entry(self, handle: EntryHandle) -> None:
        """移除条目；未知句柄直接忽略"""

    @abstractmethod
    def next_fire_time(self, handle: EntryHandle) -> Optional[datetime]:
        """获取条目的下一次触发时间，条目不存在时返回 None"""

    @abstractmethod
    def entry_count(self) -> int:
        """当前已调度的条目数"""
