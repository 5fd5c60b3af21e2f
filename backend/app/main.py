"""
CronHook 主应用入口
定时 HTTP 任务调度服务
"""
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import SessionLocal, init_db
from app.routers import tasks
from app.services.bootstrap import load_tasks
from app.services.scheduler_backend import APSchedulerBackend
from app.services.task_runtime import TaskRuntime
from app.services.task_store import DatabaseRecordSink, TaskStore

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    """Setup logging configuration"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def create_app(
    session_factory: Callable = SessionLocal,
    init_database: Optional[Callable[[], None]] = init_db,
    transport: Optional[httpx.BaseTransport] = None,
) -> FastAPI:
    """创建应用

    Args:
        session_factory: 数据库会话工厂（启动加载和执行记录落库使用）
        init_database: 建表函数，None 表示跳过
        transport: 可选的 httpx 传输层（测试时注入）
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理：先加载并注册全部任务，再开始服务请求"""
        if init_database is not None:
            init_database()

        trigger_engine = APSchedulerBackend(
            timezone=settings.SCHEDULER_TIMEZONE,
            misfire_grace_time=settings.MISFIRE_GRACE_SECONDS,
        )
        runtime = TaskRuntime(
            trigger_engine,
            DatabaseRecordSink(session_factory),
            max_workers=settings.DISPATCH_MAX_WORKERS,
            transport=transport,
        )

        db = session_factory()
        try:
            load_tasks(TaskStore(db), runtime)
        finally:
            db.close()

        runtime.start()
        app.state.runtime = runtime
        logger.info(f"{settings.APP_NAME} started on http://{settings.HOST}:{settings.PORT}")

        yield

        runtime.shutdown()

    application = FastAPI(
        title=f"{settings.APP_NAME} - 定时任务管理器",
        description="按 cron 表达式定时发送 HTTP 请求并记录执行结果",
        version="1.0.0",
        lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(tasks.router)

    @application.get("/")
    def root():
        """根路径"""
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "description": "定时 HTTP 任务调度服务"
        }

    @application.get("/health")
    def health_check(request: Request):
        """健康检查：返回已注册任务数和已调度条目数"""
        runtime = request.app.state.runtime
        return {
            "status": "healthy",
            "tasks": len(runtime.registry),
            "scheduled": runtime.engine.entry_count(),
        }

    return application


setup_logging(settings.LOG_LEVEL)

# 创建应用
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
