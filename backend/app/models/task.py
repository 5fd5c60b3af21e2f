"""
定时 HTTP 任务 ORM 模型 — 任务定义 + 执行记录
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text
)
from sqlalchemy.orm import relationship
from app.database import Base


class HttpTask(Base):
    """定时任务表"""
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    cron_expr = Column(String(100), nullable=False)
    url = Column(Text, nullable=False)
    method = Column(String(10), nullable=False, default="GET")
    headers = Column(Text, nullable=True)  # JSON 对象文本，分发时再解析
    body = Column(Text, nullable=True)     # 仅 POST 使用
    timeout = Column(Integer, nullable=False, default=10)  # 秒

    logs = relationship(
        "TaskLog",
        back_populates="task",
        order_by="TaskLog.time.desc()",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TaskLog(Base):
    """任务执行记录表（只追加）"""
    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(
        Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    time = Column(DateTime, nullable=False, default=datetime.now, index=True)
    status_text = Column(String(500), nullable=False)  # 简短状态，例如 "状态: 200"
    response_body = Column(Text, nullable=False, default="")

    task = relationship("HttpTask", back_populates="logs")
