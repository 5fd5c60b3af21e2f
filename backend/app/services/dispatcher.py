"""
HTTP 分发器 — 执行一次任务请求并记录唯一一条执行结果

定时触发与"立即执行"走同一入口 execute()，执行语义完全一致：
    - 请求创建失败、传输失败、读取响应体失败都记录为一条失败记录（响应体为空）
    - 成功时记录状态码和完整响应体
    - 不重试，不产生部分记录
    - 超时是整体截止时间（连接 + 等待响应头 + 读取响应体），自动跟随最多 10 次重定向
"""
import json
import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

import httpx

from app.models.task_definition import TaskDefinition

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/json"
MAX_REDIRECTS = 10


class ExecutionRecordSink(Protocol):
    """执行记录写入端（只追加）"""

    def append(self, task_id: int, status_text: str, response_body: str = "") -> None:
        ...


class DeadlineExceeded(Exception):
    """整体超时（连接 + 读取响应体）"""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"deadline of {timeout}s exceeded")


@dataclass(frozen=True)
class ExecutionResult:
    """
    单次执行结果

    Attributes:
        task_id: 任务ID
        status_text: 简短状态，例如 "状态: 200" 或错误描述
        response_body: 完整响应体（失败时为空）
        status_code: HTTP 状态码（未拿到响应时为 None）
        succeeded: 是否完整读取了响应
    """

    task_id: int
    status_text: str
    response_body: str = ""
    status_code: Optional[int] = None
    succeeded: bool = False


class HttpDispatcher:
    """HTTP 任务分发器"""

    def __init__(
        self,
        lookup: Callable[[int], Optional[TaskDefinition]],
        sink: ExecutionRecordSink,
        max_workers: int = 32,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            lookup: 按任务ID查找当前定义（注册表读取，加锁后立即释放）
            sink: 执行记录写入端
            max_workers: 分发线程池大小
            transport: 可选的 httpx 传输层（测试时注入 MockTransport）
        """
        self._lookup = lookup
        self._sink = sink
        self._transport = transport
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="dispatch"
        )
        # 实际的网络交互在独立线程中进行，分发线程只等到截止时间为止
        self._exchanges = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="exchange"
        )

    def submit(self, task_id: int) -> Future:
        """提交到分发线程池后立即返回，调用方无需等待"""
        return self._executor.submit(self.execute, task_id)

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait)
        self._exchanges.shutdown(wait=wait)

    def execute(self, task_id: int) -> Optional[ExecutionResult]:
        """
        执行指定任务

        Returns:
            执行结果；任务不存在时返回 None 且不写记录
        """
        definition = self._lookup(task_id)
        if definition is None:
            logger.warning(f"Cannot execute task #{task_id}: task not found")
            return None

        logger.info(f"Executing task #{definition.id}: {definition.name}")
        try:
            result = self._perform(definition)
        except Exception as e:
            logger.exception(f"Unexpected error while executing task #{definition.id}")
            result = ExecutionResult(task_id=definition.id, status_text=f"请求失败: {e}")

        self._record(result)
        return result

    # ── 内部方法 ──────────────────────────────────────

    def _perform(self, definition: TaskDefinition) -> ExecutionResult:
        timeout = definition.timeout_seconds
        deadline = time.monotonic() + timeout

        with httpx.Client(
            timeout=timeout,
            transport=self._transport,
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
        ) as client:
            try:
                request = build_request(client, definition)
            except (httpx.InvalidURL, ValueError) as e:
                return ExecutionResult(task_id=definition.id, status_text=f"创建请求失败: {e}")

            # 连接、等待响应头、读取响应体共用同一个截止时间
            progress: Dict[str, int] = {}
            remaining = max(deadline - time.monotonic(), 0)
            exchange = self._exchanges.submit(
                _exchange, client, request, definition.id, deadline, timeout, progress
            )
            try:
                return exchange.result(timeout=remaining)
            except FutureTimeout:
                # 超时的交互在后台自行结束，退出 with 时关闭连接池
                exceeded = DeadlineExceeded(timeout)
                status_code = progress.get("status_code")
                if status_code is None:
                    return ExecutionResult(
                        task_id=definition.id, status_text=f"请求失败: {exceeded}"
                    )
                return ExecutionResult(
                    task_id=definition.id,
                    status_text=f"状态: {status_code}, 读取响应体失败: {exceeded}",
                    status_code=status_code,
                )

    def _record(self, result: ExecutionResult) -> None:
        try:
            self._sink.append(result.task_id, result.status_text, result.response_body)
        except Exception:
            logger.exception(f"Failed to write execution record for task #{result.task_id}")


def _exchange(
    client: httpx.Client,
    request: httpx.Request,
    task_id: int,
    deadline: float,
    timeout: float,
    progress: Dict[str, int],
) -> ExecutionResult:
    """发送请求并读取完整响应体；拿到响应头后把状态码写入 progress"""
    try:
        response = client.send(request, stream=True)
    except httpx.HTTPError as e:
        return ExecutionResult(task_id=task_id, status_text=f"请求失败: {_describe(e)}")

    progress["status_code"] = response.status_code
    try:
        body = read_body(response, deadline, timeout)
    except (httpx.HTTPError, DeadlineExceeded) as e:
        return ExecutionResult(
            task_id=task_id,
            status_text=f"状态: {response.status_code}, 读取响应体失败: {_describe(e)}",
            status_code=response.status_code,
        )
    finally:
        response.close()

    return ExecutionResult(
        task_id=task_id,
        status_text=f"状态: {response.status_code}",
        response_body=body,
        status_code=response.status_code,
        succeeded=True,
    )


def parse_headers(definition: TaskDefinition) -> Dict[str, str]:
    """解析请求头 JSON；格式错误时记录警告并返回空字典"""
    if not definition.headers or not definition.headers.strip():
        return {}

    try:
        parsed = json.loads(definition.headers)
    except json.JSONDecodeError as e:
        logger.warning(f"Task #{definition.id} has malformed headers JSON: {e}")
        return {}

    if not isinstance(parsed, dict) or not all(
        isinstance(value, str) for value in parsed.values()
    ):
        logger.warning(f"Task #{definition.id} headers must be a JSON object of strings")
        return {}
    return parsed


def build_request(client: httpx.Client, definition: TaskDefinition) -> httpx.Request:
    """构造请求：POST 默认 JSON 类型，自定义请求头按名称字典序覆盖默认值"""
    method = definition.http_method
    headers = httpx.Headers()
    content = None

    if method == "POST":
        content = definition.body or ""
        headers["Content-Type"] = DEFAULT_CONTENT_TYPE

    custom = parse_headers(definition)
    for name in sorted(custom):
        headers[name] = custom[name]

    return client.build_request(method, definition.url, headers=headers, content=content)


def read_body(response: httpx.Response, deadline: float, timeout: float) -> str:
    """流式读取响应体，超过整体截止时间即中止"""
    chunks = []
    for chunk in response.iter_bytes():
        if time.monotonic() > deadline:
            raise DeadlineExceeded(timeout)
        chunks.append(chunk)
    if time.monotonic() > deadline:
        raise DeadlineExceeded(timeout)
    return _decode(b"".join(chunks), response.encoding)


def _decode(content: bytes, encoding: Optional[str]) -> str:
    try:
        return content.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return content.decode("utf-8", errors="replace")


def _describe(error: Exception) -> str:
    return str(error) or error.__class__.__name__
