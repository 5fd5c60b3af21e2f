"""
任务定义 — 注册表内存中持有的不可变快照

注册时从 ORM 行复制一份，调度回调和分发线程只读这份快照，
不会共享会话绑定的 ORM 对象，也不会捕获循环变量。
"""
from dataclasses import dataclass
from typing import Optional

from app.config import settings

DEFAULT_TIMEOUT_SECONDS = settings.DEFAULT_TIMEOUT_SECONDS
SUPPORTED_METHODS = ("GET", "POST")


@dataclass(frozen=True)
class TaskDefinition:
    """
    定时 HTTP 任务定义

    Attributes:
        id: 任务ID（由存储层分配）
        name: 显示名称
        cron_expr: 六段式 cron 表达式（含秒）
        url: 目标地址
        method: GET 或 POST，其他值按 GET 处理
        headers: 请求头的 JSON 对象文本（可选，分发时解析）
        body: 请求体文本（仅 POST 使用）
        timeout: 超时秒数，未设置或非正数时按默认值处理
    """

    id: int
    name: str
    cron_expr: str
    url: str
    method: str = "GET"
    headers: Optional[str] = None
    body: Optional[str] = None
    timeout: Optional[int] = DEFAULT_TIMEOUT_SECONDS

    @property
    def http_method(self) -> str:
        method = (self.method or "").strip().upper()
        return method if method in SUPPORTED_METHODS else "GET"

    @property
    def timeout_seconds(self) -> int:
        if not self.timeout or self.timeout <= 0:
            return DEFAULT_TIMEOUT_SECONDS
        return self.timeout

    @classmethod
    def from_model(cls, task) -> "TaskDefinition":
        """从 HttpTask ORM 行复制出独立的定义"""
        return cls(
            id=task.id,
            name=task.name,
            cron_expr=task.cron_expr,
            url=task.url,
            method=task.method or "GET",
            headers=task.headers,
            body=task.body,
            timeout=task.timeout,
        )
