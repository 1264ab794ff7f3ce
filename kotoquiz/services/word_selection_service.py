import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from kotoquiz.repositories.word_repository import WordRepository
from kotoquiz.repositories.word_learning_history_repository import WordLearningHistoryRepository
from kotoquiz.scheduling.prioritizer import WordPrioritizer
from kotoquiz.utils.exceptions import StorageError, ValidationError
from kotoquiz.utils.helpers import is_valid_uuid, utc_now

logger = logging.getLogger(__name__)


class WordSelectionService:
    """选词服务，决定用户接下来要测验哪些词汇"""

    def __init__(self, word_repo: WordRepository, history_repo: WordLearningHistoryRepository,
                 prioritizer: WordPrioritizer, clock: Callable[[], datetime] = utc_now):
        self.word_repo = word_repo
        self.history_repo = history_repo
        self.prioritizer = prioritizer
        self.clock = clock

    @staticmethod
    def _validate_ids(ids: List[str], name: str) -> None:
        for value in ids:
            if not is_valid_uuid(value):
                raise ValidationError(f"invalid {name} id: {value!r}")

    def select_words(self, user_id: Optional[str], tag_ids: List[str],
                     level_name_ids: List[str], nb: int) -> List[str]:
        """
        为用户选择词汇

        Args:
            user_id: 用户ID，为空时不做个性化，直接随机抽样
            tag_ids: 标签ID筛选
            level_name_ids: 等级名称ID筛选
            nb: 需要的数量

        Returns:
            List[str]: 最多 nb 个词汇ID，不重复
        """
        if not isinstance(nb, int) or nb < 0:
            raise ValidationError(f"nb must be a non-negative integer, got {nb!r}")
        self._validate_ids(tag_ids, "tag")
        self._validate_ids(level_name_ids, "level name")
        if nb == 0:
            return []

        try:
            candidates = list(dict.fromkeys(self.word_repo.list_word_ids(tag_ids, level_name_ids)))
            if not candidates:
                logger.info(f"筛选条件没有匹配的词汇: tags={tag_ids}, levelNames={level_name_ids}")
                return []

            if not user_id or not user_id.strip():
                selected = self.prioritizer.sample(candidates, nb)
                logger.info(f"匿名选词: 候选 {len(candidates)} 个, 返回 {len(selected)} 个")
                return selected

            histories = self.history_repo.get_histories_by_word_ids(user_id, candidates)
        except SQLAlchemyError as e:
            logger.error(f"选词时读取存储失败: {e}")
            raise StorageError(str(e)) from e

        selected = self.prioritizer.select(candidates, histories, nb, self.clock())
        logger.info(
            f"用户 {user_id} 选词: 候选 {len(candidates)} 个, 有历史 {len(histories)} 个, "
            f"返回 {len(selected)} 个"
        )
        return selected
