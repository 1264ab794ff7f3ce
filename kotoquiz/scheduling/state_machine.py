from dataclasses import dataclass
from enum import Enum
from datetime import datetime, timedelta
import logging

from kotoquiz.models.word_learning_history import WordLearningHistory, LearningStatus

logger = logging.getLogger(__name__)


class QuizResultStatus(str, Enum):
    """单个词汇的测验结果"""
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    UNANSWERED = "UNANSWERED"


@dataclass(frozen=True)
class QuizResult:
    """一次提交中单个词汇的结果"""
    word_id: str
    status: QuizResultStatus


# 各学习状态对应的基础复习间隔
BASE_INTERVALS = {
    LearningStatus.NEW: timedelta(hours=4),
    LearningStatus.LEARNING: timedelta(hours=24),
    LearningStatus.REVIEWING: timedelta(hours=72),
    LearningStatus.MASTERED: timedelta(hours=168),  # 一周
}

MASTERED_MIN_STREAK = 5
MASTERED_MIN_RATE = 0.9
REVIEWING_MIN_STREAK = 3
REVIEWING_MIN_RATE = 0.7


class LearningStateMachine:
    """
    学习历史状态机

    根据一次测验结果推进 (用户, 词汇) 的学习历史：更新计数与连对、
    重新计算学习状态，再计算下次复习时间。"当前时间" 由调用方传入。
    """

    def __init__(self, min_review_interval: timedelta = timedelta(minutes=5)):
        self.min_review_interval = min_review_interval

    def apply_result(self, history: WordLearningHistory, status: QuizResultStatus,
                     now: datetime) -> WordLearningHistory:
        """
        将一次测验结果应用到历史记录上（原地修改并返回同一对象）

        Args:
            history: 学习历史
            status: 测验结果
            now: 当前时间

        Returns:
            WordLearningHistory: 更新后的历史记录
        """
        status = QuizResultStatus(status)

        history.last_viewed_at = now
        history.answer_count += 1

        if status == QuizResultStatus.SUCCESS:
            history.nb_success += 1
            history.current_streak += 1
            history.best_streak = max(history.best_streak, history.current_streak)
        elif status == QuizResultStatus.ERROR:
            history.nb_errors += 1
            history.current_streak = 0
        else:
            history.nb_unanswered += 1
            history.current_streak = 0

        history.learning_status = self.compute_learning_status(history)
        history.next_review_date = self.compute_next_review_date(history, now)

        logger.debug(
            f"词汇 {history.word_id} 结果 {status.value}: 状态={history.learning_status.value}, "
            f"连对={history.current_streak}, 下次复习={history.next_review_date.isoformat()}"
        )
        return history

    @staticmethod
    def compute_learning_status(history: WordLearningHistory) -> LearningStatus:
        """根据计数与连对次数计算学习状态"""
        total_answers = history.nb_success + history.nb_errors + history.nb_unanswered
        if total_answers == 0:
            return LearningStatus.NEW

        # 未作答在分母中计两次，对未作答施加更重的惩罚
        success_rate = history.nb_success / (total_answers + history.nb_unanswered)

        if history.current_streak >= MASTERED_MIN_STREAK and success_rate >= MASTERED_MIN_RATE:
            return LearningStatus.MASTERED
        if history.current_streak >= REVIEWING_MIN_STREAK and success_rate >= REVIEWING_MIN_RATE:
            return LearningStatus.REVIEWING
        return LearningStatus.LEARNING

    @staticmethod
    def interval_multiplier(history: WordLearningHistory) -> float:
        """根据表现计算复习间隔倍数"""
        total_answers = history.nb_success + history.nb_errors + history.nb_unanswered
        success_rate = history.nb_success / total_answers if total_answers else 0.0

        multiplier = 1.0
        if history.current_streak > 3:
            multiplier += history.current_streak * 0.2  # 每次连对 +20%
        if success_rate > 0.8:
            multiplier += 0.5
        if success_rate < 0.6:
            multiplier -= 0.5
        return multiplier

    def compute_next_review_date(self, history: WordLearningHistory, now: datetime) -> datetime:
        """下次复习时间 = now + 基础间隔 * 倍数，间隔不低于 min_review_interval"""
        base_interval = BASE_INTERVALS[history.learning_status]
        interval = base_interval * self.interval_multiplier(history)
        if interval < self.min_review_interval:
            interval = self.min_review_interval
        return now + interval
