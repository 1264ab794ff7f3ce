import random
import logging
from datetime import datetime
from typing import Dict, List, Optional

from kotoquiz.models.word_learning_history import WordLearningHistory, LearningStatus
from kotoquiz.utils.helpers import ensure_utc

logger = logging.getLogger(__name__)


# 按学习状态调整优先级
STATUS_WEIGHTS = {
    LearningStatus.NEW: 1.2,
    LearningStatus.LEARNING: 1.1,
    LearningStatus.REVIEWING: 0.9,
    LearningStatus.MASTERED: 0.7,
}

# 没有学习历史的词汇给一个中等分数
NO_HISTORY_SCORE = 50.0
DUE_SCORE = 100.0
STRUGGLING_RATE = 0.6
STRUGGLING_BOOST = 1.3


class WordPrioritizer:
    """
    选词优先级计算

    对候选词汇打分排序，取前 nb 个后在固定大小的分组内打乱顺序，
    既保留整体优先级，又避免每次返回完全相同的序列。
    随机数生成器由调用方注入，测试中可以使用固定种子。
    """

    def __init__(self, group_size: int = 10, rng: Optional[random.Random] = None):
        if group_size < 1:
            raise ValueError("group_size must be >= 1")
        self.group_size = group_size
        self.rng = rng or random.Random()

    def score(self, history: WordLearningHistory, now: datetime) -> float:
        """计算单个有历史记录词汇的优先级分数（越高越优先）"""
        next_review_date = ensure_utc(history.next_review_date)
        if next_review_date is None:
            # 从未排期的记录视为当前到期
            hours_until_review = 0.0
        else:
            hours_until_review = (next_review_date - now).total_seconds() / 3600

        if hours_until_review <= 0:
            # 已过期：过期越久分数越高
            score = DUE_SCORE + (-hours_until_review)
        else:
            score = DUE_SCORE - hours_until_review

        score *= STATUS_WEIGHTS.get(history.learning_status, 1.0)

        if history.answer_count > 0:
            success_rate = history.nb_success / history.answer_count
            if success_rate < STRUGGLING_RATE:
                score *= STRUGGLING_BOOST
        return score

    def rank(self, word_ids: List[str], histories: Dict[str, WordLearningHistory],
             now: datetime) -> List[str]:
        """
        按分数从高到低排列全部候选词汇

        无历史记录的词汇先随机打乱再以固定分数参与排序，
        因此同分时它们之间的先后是随机的。
        """
        with_history = [word_id for word_id in word_ids if word_id in histories]
        without_history = [word_id for word_id in word_ids if word_id not in histories]
        self.rng.shuffle(without_history)

        scored = [(word_id, self.score(histories[word_id], now)) for word_id in with_history]
        scored.extend((word_id, NO_HISTORY_SCORE) for word_id in without_history)
        scored.sort(key=lambda item: item[1], reverse=True)

        logger.debug(f"候选词汇评分完成: 有历史 {len(with_history)} 个, 无历史 {len(without_history)} 个")
        return [word_id for word_id, _ in scored]

    def shuffle_in_groups(self, ids: List[str]) -> List[str]:
        """按 group_size 分组，组内随机打乱，组间顺序不变"""
        result = list(ids)
        for start in range(0, len(result), self.group_size):
            group = result[start:start + self.group_size]
            self.rng.shuffle(group)
            result[start:start + self.group_size] = group
        return result

    def select(self, word_ids: List[str], histories: Dict[str, WordLearningHistory],
               nb: int, now: datetime) -> List[str]:
        """
        个性化选词

        Args:
            word_ids: 去重后的候选词汇ID
            histories: 用户在候选词汇上的学习历史（word_id -> 历史记录）
            nb: 需要的数量
            now: 当前时间

        Returns:
            List[str]: 最多 min(nb, len(word_ids)) 个词汇ID
        """
        if nb <= 0 or not word_ids:
            return []
        ranked = self.rank(word_ids, histories, now)
        return self.shuffle_in_groups(ranked[:nb])

    def sample(self, word_ids: List[str], nb: int) -> List[str]:
        """匿名用户：不考虑历史，均匀随机抽取"""
        if nb <= 0 or not word_ids:
            return []
        return self.rng.sample(word_ids, min(nb, len(word_ids)))
