from typing import Dict, List
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, Query

from kotoquiz.models.word_learning_history import WordLearningHistory, LearningStatus

# 单条 IN 查询 / 批量插入的最大参数数量
QUERY_CHUNK_SIZE = 500

# 支持 INSERT ... ON CONFLICT DO NOTHING 的方言
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class WordLearningHistoryRepository:
    """
    学习历史存储

    只负责读写，不提交事务；提交与回滚由调用方的 UnitOfWork 负责。
    """

    def __init__(self, db: Session):
        self.db = db

    def history_query(self, user_id: str, word_ids: List[str], lock: bool = False) -> Query:
        """构造 (用户, 词汇ID列表) 的历史记录查询，lock=True 时附加 FOR UPDATE"""
        query = self.db.query(WordLearningHistory).filter(
            WordLearningHistory.user_id == user_id,
            WordLearningHistory.word_id.in_(word_ids)
        )
        if lock:
            query = query.with_for_update()
        return query

    def _fetch(self, user_id: str, word_ids: List[str], lock: bool) -> Dict[str, WordLearningHistory]:
        result = {}
        for start in range(0, len(word_ids), QUERY_CHUNK_SIZE):
            chunk = word_ids[start:start + QUERY_CHUNK_SIZE]
            for history in self.history_query(user_id, chunk, lock=lock).all():
                result[history.word_id] = history
        return result

    def get_histories_locked(self, user_id: str, word_ids: List[str]) -> Dict[str, WordLearningHistory]:
        """批量获取历史记录并加行锁（SELECT ... FOR UPDATE），锁在事务结束时释放"""
        if not word_ids:
            return {}
        return self._fetch(user_id, word_ids, lock=True)

    def get_histories_by_word_ids(self, user_id: str, word_ids: List[str]) -> Dict[str, WordLearningHistory]:
        """批量获取历史记录快照（不加锁）"""
        if not word_ids:
            return {}
        return self._fetch(user_id, word_ids, lock=False)

    def insert_missing_histories(self, user_id: str, word_ids: List[str]) -> None:
        """
        为缺失的 (用户, 词汇) 批量插入零值历史记录

        使用 INSERT ... ON CONFLICT DO NOTHING：并发事务已插入（或正在插入）同一主键时，
        本次插入跳过该行并等待对方提交，随后的加锁读取即可拿到对方写入的记录。
        """
        if not word_ids:
            return
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"unsupported database dialect: {dialect}")

        for start in range(0, len(word_ids), QUERY_CHUNK_SIZE):
            chunk = word_ids[start:start + QUERY_CHUNK_SIZE]
            rows = [
                {
                    "user_id": user_id,
                    "word_id": word_id,
                    "answer_count": 0,
                    "nb_success": 0,
                    "nb_errors": 0,
                    "nb_unanswered": 0,
                    "current_streak": 0,
                    "best_streak": 0,
                    "learning_status": LearningStatus.NEW,
                }
                for word_id in chunk
            ]
            statement = insert(WordLearningHistory).values(rows).on_conflict_do_nothing(
                index_elements=["user_id", "word_id"]
            )
            self.db.execute(statement)

    def update_histories(self, histories: List[WordLearningHistory]) -> None:
        """批量写回已修改的历史记录"""
        if not histories:
            return
        self.db.add_all(histories)
        self.db.flush()
