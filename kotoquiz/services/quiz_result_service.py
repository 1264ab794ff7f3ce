import logging
from datetime import datetime
from typing import Callable, List

from kotoquiz.repositories.word_learning_history_repository import WordLearningHistoryRepository
from kotoquiz.scheduling.state_machine import LearningStateMachine, QuizResult, QuizResultStatus
from kotoquiz.utils.database import UnitOfWork
from kotoquiz.utils.exceptions import StorageError, ValidationError
from kotoquiz.utils.helpers import is_valid_uuid, utc_now

logger = logging.getLogger(__name__)


class QuizResultService:
    """测验结果服务，把一批测验结果写入用户的学习历史"""

    def __init__(self, history_repo: WordLearningHistoryRepository, unit_of_work: UnitOfWork,
                 state_machine: LearningStateMachine, clock: Callable[[], datetime] = utc_now):
        self.history_repo = history_repo
        self.unit_of_work = unit_of_work
        self.state_machine = state_machine
        self.clock = clock

    def _validate(self, user_id: str, results: List[QuizResult]) -> None:
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("user id must not be empty")
        for result in results:
            if not is_valid_uuid(result.word_id):
                raise ValidationError(f"invalid word id: {result.word_id!r}")
            try:
                QuizResultStatus(result.status)
            except ValueError:
                raise ValidationError(f"invalid result status: {result.status!r}") from None

    def process_quiz_results(self, user_id: str, results: List[QuizResult]) -> int:
        """
        处理一次提交的测验结果

        在同一个事务中：对涉及的历史记录加锁读取，缺失的记录先以
        INSERT ... ON CONFLICT DO NOTHING 补齐再加锁读取，
        然后按提交顺序依次应用状态机并批量写回。任何存储错误都会回滚整批。

        Args:
            user_id: 用户ID
            results: 测验结果列表（可以为空）

        Returns:
            int: 处理的结果数量
        """
        self._validate(user_id, results)
        if not results:
            logger.info(f"用户 {user_id} 提交了空的测验结果，无需处理")
            return 0

        word_ids = list(dict.fromkeys(result.word_id for result in results))
        now = self.clock()

        with self.unit_of_work:
            histories = self.history_repo.get_histories_locked(user_id, word_ids)
            missing = [word_id for word_id in word_ids if word_id not in histories]
            if missing:
                self.history_repo.insert_missing_histories(user_id, missing)
                histories.update(self.history_repo.get_histories_locked(user_id, missing))
                still_missing = [word_id for word_id in missing if word_id not in histories]
                if still_missing:
                    raise StorageError(f"无法创建学习历史: {still_missing}")

            for result in results:
                self.state_machine.apply_result(
                    histories[result.word_id], QuizResultStatus(result.status), now
                )

            self.history_repo.update_histories([histories[word_id] for word_id in word_ids])

        logger.info(
            f"用户 {user_id} 测验结果处理完成: 结果 {len(results)} 条, "
            f"新建历史 {len(missing)} 条, 更新历史 {len(word_ids) - len(missing)} 条"
        )
        return len(results)
