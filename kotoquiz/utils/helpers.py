import uuid
from datetime import datetime
from typing import List, Optional

import pytz


def utc_now() -> datetime:
    """当前UTC时间（带时区）"""
    return datetime.now(pytz.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """将数据库读出的时间统一为带时区的UTC时间，SQLite 会丢失时区信息"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def is_valid_uuid(value: str) -> bool:
    """验证字符串是否为合法UUID"""
    if not value or not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def split_query_list(raw: Optional[str]) -> List[str]:
    """解析逗号分隔的查询参数，忽略空白项"""
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]
