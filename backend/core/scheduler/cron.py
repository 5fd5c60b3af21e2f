"""
Cron 表达式解析 — 六段式（含秒）表达式 → APScheduler 触发器

支持的格式:
    - 六段: 秒 分 时 日 月 周，例如 "*/5 * * * * *"
    - 描述符: @yearly @annually @monthly @weekly @daily @midnight @hourly
    - 固定间隔: "@every 1h30m"、"@every 5s"
    - 时区前缀: "CRON_TZ=Asia/Shanghai 0 30 1 * * *"

周字段按标准 cron 语义解释（0 和 7 都表示周日），
在交给 APScheduler 之前转换为星期名称（APScheduler 的数字 0 表示周一）。
日字段和周字段都不是 * 或 ? 时，任一字段匹配即触发（与标准 cron 一致）。
"""
import re
from typing import List, Set

from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger


class InvalidCronExpression(ValueError):
    """cron 表达式无法解析"""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"invalid cron expression '{expression}': {reason}")


DESCRIPTORS = {
    "@yearly": "0 0 0 1 1 *",
    "@annually": "0 0 0 1 1 *",
    "@monthly": "0 0 0 1 * *",
    "@weekly": "0 0 0 * * 0",
    "@daily": "0 0 0 * * *",
    "@midnight": "0 0 0 * * *",
    "@hourly": "0 0 * * * *",
}

# 标准 cron 周编号: 0=周日 ... 6=周六
_CRON_DAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
# APScheduler 内部顺序: 0=周一 ... 6=周日
_APS_DAY_ORDER = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_TZ_PREFIXES = ("CRON_TZ=", "TZ=")


def parse_cron_expression(expression: str, timezone=None) -> BaseTrigger:
    """将 cron 表达式解析为 APScheduler 触发器

    Args:
        expression: cron 表达式
        timezone: 默认时区（表达式中的 CRON_TZ= 前缀优先）

    Raises:
        InvalidCronExpression: 表达式格式或取值非法
    """
    if not expression or not expression.strip():
        raise InvalidCronExpression(expression or "", "empty expression")

    schedule = expression.strip()
    if schedule.startswith(_TZ_PREFIXES):
        prefix, _, rest = schedule.partition(" ")
        timezone = prefix.split("=", 1)[1]
        schedule = rest.strip()
        if not schedule:
            raise InvalidCronExpression(expression, "missing schedule after timezone")

    try:
        if schedule.startswith("@every"):
            seconds = parse_duration(expression, schedule[len("@every"):].strip())
            return IntervalTrigger(seconds=seconds, timezone=timezone)

        if schedule.startswith("@"):
            if schedule not in DESCRIPTORS:
                raise InvalidCronExpression(expression, f"unrecognized descriptor '{schedule}'")
            schedule = DESCRIPTORS[schedule]

        fields = schedule.split()
        if len(fields) != 6:
            raise InvalidCronExpression(
                expression, f"expected exactly 6 fields, found {len(fields)}"
            )
        second, minute, hour, day, month, day_of_week = fields
        weekdays = translate_day_of_week(expression, day_of_week)
        common = dict(second=second, minute=minute, hour=hour, month=month, timezone=timezone)

        if _wildcard(day) == "*" or weekdays == "*":
            return CronTrigger(day=_wildcard(day), day_of_week=weekdays, **common)

        # 日与周都受限时按标准 cron 语义取并集
        return OrTrigger([
            CronTrigger(day=day, day_of_week="*", **common),
            CronTrigger(day="*", day_of_week=weekdays, **common),
        ])
    except InvalidCronExpression:
        raise
    except (ValueError, LookupError) as e:
        raise InvalidCronExpression(expression, str(e)) from e


def parse_duration(expression: str, text: str) -> float:
    """解析 Go 风格的时长文本（如 1h30m、500ms），返回秒数

    小于 1 秒的间隔按 1 秒处理。
    """
    if not text:
        raise InvalidCronExpression(expression, "missing duration for @every")

    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text):
        raise InvalidCronExpression(expression, f"invalid duration '{text}'")
    if total <= 0:
        raise InvalidCronExpression(expression, "duration must be positive")
    return max(total, 1.0)


def translate_day_of_week(expression: str, field: str) -> str:
    """将标准 cron 的周字段转换为 APScheduler 可接受的星期名称列表"""
    if field in ("*", "?"):
        return "*"

    days: Set[int] = set()
    for part in field.split(","):
        days.update(_expand_day_part(expression, part))

    return ",".join(name for name in _APS_DAY_ORDER if _CRON_DAY_NAMES.index(name) in days)


def _expand_day_part(expression: str, part: str) -> List[int]:
    base, sep, step_text = part.partition("/")
    step = 1
    if sep:
        if not step_text.isdigit() or int(step_text) == 0:
            raise InvalidCronExpression(expression, f"invalid step in day-of-week '{part}'")
        step = int(step_text)

    if base in ("*", "?"):
        start, end = 0, 6
    elif "-" in base:
        low, _, high = base.partition("-")
        start, end = _day_value(expression, low), _day_value(expression, high)
        if start > end:
            raise InvalidCronExpression(expression, f"day-of-week range '{base}' is reversed")
    else:
        start = _day_value(expression, base)
        end = 6 if sep else start

    return [value % 7 for value in range(start, end + 1, step)]


def _day_value(expression: str, token: str) -> int:
    token = token.strip().lower()
    if token in _CRON_DAY_NAMES:
        return _CRON_DAY_NAMES.index(token)
    if token.isdigit() and 0 <= int(token) <= 7:
        return int(token)
    raise InvalidCronExpression(expression, f"invalid day-of-week value '{token}'")


def _wildcard(field: str) -> str:
    return "*" if field == "?" else field
