"""服务层异常定义"""


class KotoquizError(Exception):
    """所有业务异常的基类"""


class ValidationError(KotoquizError, ValueError):
    """输入校验失败（标识符为空或格式错误、数量非法等），在访问存储前抛出"""


class StorageError(KotoquizError):
    """存储层失败（锁超时、连接失败、约束冲突），原始异常保存在 __cause__ 中"""
