from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
import logging

from kotoquiz.config.settings import settings
from kotoquiz.utils.exceptions import StorageError

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # TestClient 与 uvicorn 线程池会跨线程使用连接
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_recycle": 3600}


# 创建数据库引擎
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,  # 在DEBUG模式下输出SQL语句
    **_engine_options(settings.DATABASE_URL),
)

# 创建SessionLocal类
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """获取数据库会话（FastAPI 依赖）"""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"数据库会话错误: {e}")
        db.rollback()
        raise
    finally:
        db.close()


class UnitOfWork:
    """
    显式工作单元

    包裹一个数据库会话：正常退出时提交，出现任何异常时回滚并重新抛出。
    SQLAlchemy 异常统一转换为 StorageError，保证一批写入要么全部生效要么全部不生效。
    """

    def __init__(self, db: Session):
        self.db = db

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"事务提交失败: {e}")
                raise StorageError(str(e)) from e
            return False

        self.db.rollback()
        if isinstance(exc, SQLAlchemyError):
            logger.error(f"事务执行失败，已回滚: {exc}")
            raise StorageError(str(exc)) from exc
        return False


def check_db_connection(db: Session) -> bool:
    """检查数据库连接是否正常"""
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"数据库连接检查失败: {e}")
        return False


def init_db(bind=None):
    """初始化数据库表"""
    try:
        from kotoquiz.models.base import Base
        from kotoquiz.models.label import Label
        from kotoquiz.models.level import Level
        from kotoquiz.models.word import Word
        from kotoquiz.models.word_learning_history import WordLearningHistory

        # 创建所有表
        Base.metadata.create_all(bind=bind or engine)
        logger.info("数据库表初始化完成")
    except SQLAlchemyError as e:
        logger.error(f"数据库初始化失败: {e}")
        raise
