import enum

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey, Index

from kotoquiz.models.base import Base


class LearningStatus(str, enum.Enum):
    """学习状态，按 NEW -> LEARNING -> REVIEWING -> MASTERED 递进，可回退"""
    NEW = "NEW"
    LEARNING = "LEARNING"
    REVIEWING = "REVIEWING"
    MASTERED = "MASTERED"


"""
学习历史模型
每个 (用户, 词汇) 一条记录，在第一次提交测验结果时创建。
记录最近一次作答时间、下次复习时间、答题计数、连对次数与学习状态。
"""


class WordLearningHistory(Base):
    __tablename__ = "word_learning_histories"
    __table_args__ = (
        Index("idx_user_word", "user_id", "word_id"),
    )

    user_id = Column(String(255), primary_key=True)
    # 不声明外键：词汇被删除后历史记录仍可保留
    word_id = Column(String(36), primary_key=True)

    last_viewed_at = Column(DateTime(timezone=True))
    next_review_date = Column(DateTime(timezone=True))

    answer_count = Column(Integer, default=0, nullable=False)
    nb_success = Column(Integer, default=0, nullable=False)
    nb_errors = Column(Integer, default=0, nullable=False)
    nb_unanswered = Column(Integer, default=0, nullable=False)
    current_streak = Column(Integer, default=0, nullable=False)
    best_streak = Column(Integer, default=0, nullable=False)

    learning_status = Column(
        Enum(LearningStatus, native_enum=False, length=20),
        default=LearningStatus.NEW,
        nullable=False,
    )

    @classmethod
    def fresh(cls, user_id: str, word_id: str) -> "WordLearningHistory":
        """构造一条零值历史记录（尚未持久化）"""
        return cls(
            user_id=user_id,
            word_id=word_id,
            answer_count=0,
            nb_success=0,
            nb_errors=0,
            nb_unanswered=0,
            current_streak=0,
            best_streak=0,
            learning_status=LearningStatus.NEW,
        )

