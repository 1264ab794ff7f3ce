import uuid
import pytest
from datetime import timedelta
from unittest.mock import MagicMock, patch

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from kotoquiz.models.word_learning_history import WordLearningHistory, LearningStatus
from kotoquiz.repositories.word_learning_history_repository import WordLearningHistoryRepository
from kotoquiz.scheduling.state_machine import LearningStateMachine, QuizResult, QuizResultStatus
from kotoquiz.services.quiz_result_service import QuizResultService
from kotoquiz.utils.database import UnitOfWork, init_db
from kotoquiz.utils.exceptions import StorageError, ValidationError

from conftest import FIXED_NOW, USER_ID

WORD_A = str(uuid.uuid4())
WORD_B = str(uuid.uuid4())


def build_service(db_session, now=FIXED_NOW):
    return QuizResultService(
        history_repo=WordLearningHistoryRepository(db_session),
        unit_of_work=UnitOfWork(db_session),
        state_machine=LearningStateMachine(),
        clock=lambda: now,
    )


def load(db_session, word_id, user_id=USER_ID):
    return db_session.get(WordLearningHistory, (user_id, word_id))


@pytest.fixture
def mocked():
    repo = MagicMock(spec=WordLearningHistoryRepository)
    repo.get_histories_locked.return_value = {}
    uow = MagicMock()
    service = QuizResultService(repo, uow, LearningStateMachine(), clock=lambda: FIXED_NOW)
    return service, repo, uow


def test_empty_batch_touches_no_storage(mocked):
    service, repo, uow = mocked
    assert service.process_quiz_results(USER_ID, []) == 0
    assert repo.get_histories_locked.call_count == 0
    assert repo.insert_missing_histories.call_count == 0
    assert repo.update_histories.call_count == 0
    assert uow.__enter__.call_count == 0


@pytest.mark.parametrize("user_id", ["", "   ", None])
def test_missing_user_is_rejected_before_storage(mocked, user_id):
    service, repo, uow = mocked
    with pytest.raises(ValidationError):
        service.process_quiz_results(user_id, [QuizResult(WORD_A, QuizResultStatus.SUCCESS)])
    repo.get_histories_locked.assert_not_called()


def test_malformed_word_id_is_rejected_before_storage(mocked):
    service, repo, uow = mocked
    results = [
        QuizResult(WORD_A, QuizResultStatus.SUCCESS),
        QuizResult("not-a-uuid", QuizResultStatus.ERROR),
    ]
    with pytest.raises(ValidationError):
        service.process_quiz_results(USER_ID, results)
    repo.get_histories_locked.assert_not_called()


def test_unknown_status_is_rejected(mocked):
    service, repo, uow = mocked
    with pytest.raises(ValidationError):
        service.process_quiz_results(USER_ID, [QuizResult(WORD_A, "MAYBE")])
    repo.get_histories_locked.assert_not_called()


def test_batch_is_fetched_once_with_lock(mocked):
    service, repo, uow = mocked
    results = [
        QuizResult(WORD_A, QuizResultStatus.SUCCESS),
        QuizResult(WORD_B, QuizResultStatus.ERROR),
        QuizResult(WORD_A, QuizResultStatus.SUCCESS),
    ]
    existing = {word_id: WordLearningHistory.fresh(USER_ID, word_id) for word_id in (WORD_A, WORD_B)}
    repo.get_histories_locked.return_value = existing
    service.process_quiz_results(USER_ID, results)

    repo.get_histories_locked.assert_called_once_with(USER_ID, [WORD_A, WORD_B])
    repo.insert_missing_histories.assert_not_called()
    updated = repo.update_histories.call_args[0][0]
    assert updated == [existing[WORD_A], existing[WORD_B]]
    assert existing[WORD_A].nb_success == 2
    assert existing[WORD_B].nb_errors == 1
    assert uow.__enter__.call_count == 1
    assert uow.__exit__.call_count == 1


def test_missing_histories_are_inserted_then_locked(mocked):
    service, repo, uow = mocked
    created = {word_id: WordLearningHistory.fresh(USER_ID, word_id) for word_id in (WORD_A, WORD_B)}
    repo.get_histories_locked.side_effect = [{}, created]
    service.process_quiz_results(USER_ID, [
        QuizResult(WORD_A, QuizResultStatus.SUCCESS),
        QuizResult(WORD_B, QuizResultStatus.UNANSWERED),
    ])

    repo.insert_missing_histories.assert_called_once_with(USER_ID, [WORD_A, WORD_B])
    assert repo.get_histories_locked.call_count == 2
    assert repo.get_histories_locked.call_args_list[1][0] == (USER_ID, [WORD_A, WORD_B])
    repo.update_histories.assert_called_once_with([created[WORD_A], created[WORD_B]])
    assert created[WORD_A].nb_success == 1
    assert created[WORD_B].nb_unanswered == 1


def test_only_absent_keys_are_inserted(mocked):
    service, repo, uow = mocked
    known = WordLearningHistory.fresh(USER_ID, WORD_A)
    repo.get_histories_locked.side_effect = [
        {WORD_A: known},
        {WORD_B: WordLearningHistory.fresh(USER_ID, WORD_B)},
    ]
    service.process_quiz_results(USER_ID, [
        QuizResult(WORD_A, QuizResultStatus.ERROR),
        QuizResult(WORD_B, QuizResultStatus.SUCCESS),
    ])

    repo.insert_missing_histories.assert_called_once_with(USER_ID, [WORD_B])
    assert repo.get_histories_locked.call_args_list[1][0] == (USER_ID, [WORD_B])
    assert known.nb_errors == 1


def test_history_that_cannot_be_created_fails_the_batch(mocked):
    service, repo, uow = mocked
    uow.__exit__.return_value = False
    repo.get_histories_locked.side_effect = [{}, {}]
    with pytest.raises(StorageError):
        service.process_quiz_results(USER_ID, [QuizResult(WORD_A, QuizResultStatus.SUCCESS)])
    repo.update_histories.assert_not_called()


def test_first_result_creates_history(db_session):
    service = build_service(db_session)
    service.process_quiz_results(USER_ID, [QuizResult(WORD_A, QuizResultStatus.SUCCESS)])

    history = load(db_session, WORD_A)
    assert history is not None
    assert history.answer_count == 1
    assert history.nb_success == 1
    assert history.learning_status == LearningStatus.LEARNING


def test_existing_history_is_updated(db_session):
    service = build_service(db_session)
    for _ in range(4):
        service.process_quiz_results(USER_ID, [QuizResult(WORD_A, QuizResultStatus.SUCCESS)])
    build_service(db_session, now=FIXED_NOW + timedelta(days=1)).process_quiz_results(
        USER_ID, [QuizResult(WORD_A, QuizResultStatus.SUCCESS)]
    )

    history = load(db_session, WORD_A)
    assert history.answer_count == 5
    assert history.current_streak == 5
    assert history.learning_status == LearningStatus.MASTERED
    assert db_session.query(WordLearningHistory).count() == 1


def test_duplicates_in_one_batch_apply_in_order(db_session):
    service = build_service(db_session)
    service.process_quiz_results(USER_ID, [
        QuizResult(WORD_A, QuizResultStatus.SUCCESS),
        QuizResult(WORD_A, QuizResultStatus.SUCCESS),
        QuizResult(WORD_A, QuizResultStatus.ERROR),
    ])

    history = load(db_session, WORD_A)
    assert history.answer_count == 3
    assert history.nb_success == 2
    assert history.nb_errors == 1
    assert history.current_streak == 0
    assert history.best_streak == 2


def test_histories_are_scoped_per_user(db_session):
    service = build_service(db_session)
    service.process_quiz_results(USER_ID, [QuizResult(WORD_A, QuizResultStatus.SUCCESS)])
    service.process_quiz_results("other-user", [QuizResult(WORD_A, QuizResultStatus.ERROR)])

    assert load(db_session, WORD_A).nb_success == 1
    assert load(db_session, WORD_A, user_id="other-user").nb_errors == 1


def test_storage_failure_rolls_back_whole_batch(db_session):
    service = build_service(db_session)
    service.process_quiz_results(USER_ID, [QuizResult(WORD_A, QuizResultStatus.SUCCESS)])

    with patch.object(service.history_repo, "update_histories",
                      side_effect=OperationalError("UPDATE", {}, Exception("lock timeout"))):
        with pytest.raises(StorageError):
            service.process_quiz_results(USER_ID, [
                QuizResult(WORD_A, QuizResultStatus.ERROR),
                QuizResult(WORD_B, QuizResultStatus.SUCCESS),
            ])

    history = load(db_session, WORD_A)
    assert history.answer_count == 1
    assert history.nb_errors == 0
    assert load(db_session, WORD_B) is None


class SnapshotBeforeCommitRepository(WordLearningHistoryRepository):
    """第一次加锁读取后先让另一个事务完成提交，再返回读取前的结果"""

    def __init__(self, db, on_first_read):
        super().__init__(db)
        self.on_first_read = on_first_read
        self.reads = 0

    def get_histories_locked(self, user_id, word_ids):
        histories = super().get_histories_locked(user_id, word_ids)
        self.reads += 1
        if self.reads == 1:
            self.on_first_read()
        return histories


def test_concurrent_first_submissions_are_serialized(tmp_path):
    file_engine = create_engine(f"sqlite:///{tmp_path / 'histories.db'}")
    init_db(bind=file_engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    session_a, session_b = Session(), Session()
    try:
        service_a = build_service(session_a)

        def commit_other_submission():
            service_a.process_quiz_results(USER_ID, [QuizResult(WORD_A, QuizResultStatus.SUCCESS)])

        repo_b = SnapshotBeforeCommitRepository(session_b, commit_other_submission)
        service_b = QuizResultService(repo_b, UnitOfWork(session_b), LearningStateMachine(),
                                      clock=lambda: FIXED_NOW)

        assert service_b.process_quiz_results(
            USER_ID, [QuizResult(WORD_A, QuizResultStatus.ERROR)]
        ) == 1
        assert repo_b.reads == 2

        with Session() as check:
            rows = check.query(WordLearningHistory).all()
            assert len(rows) == 1
            assert rows[0].answer_count == 2
            assert rows[0].nb_success == 1
            assert rows[0].nb_errors == 1
    finally:
        session_a.close()
        session_b.close()
        file_engine.dispose()


@pytest.fixture
def compiled_history_queries(monkeypatch):
    """记录历史查询在 PostgreSQL 方言下生成的 SQL"""
    statements = []
    build_query = WordLearningHistoryRepository.history_query

    def recording(self, user_id, word_ids, lock=False):
        query = build_query(self, user_id, word_ids, lock=lock)
        statements.append(str(query.statement.compile(dialect=postgresql.dialect())))
        return query

    monkeypatch.setattr(WordLearningHistoryRepository, "history_query", recording)
    return statements


def test_ingestion_reads_histories_with_row_locks(db_session, compiled_history_queries):
    build_service(db_session).process_quiz_results(USER_ID, [
        QuizResult(WORD_A, QuizResultStatus.SUCCESS),
        QuizResult(WORD_B, QuizResultStatus.ERROR),
    ])

    assert len(compiled_history_queries) == 2
    assert all("FOR UPDATE" in sql for sql in compiled_history_queries)


def test_locked_read_emits_for_update(db_session, compiled_history_queries):
    WordLearningHistoryRepository(db_session).get_histories_locked(USER_ID, [WORD_A])
    assert "FOR UPDATE" in compiled_history_queries[0]


def test_snapshot_read_takes_no_lock(db_session, compiled_history_queries):
    WordLearningHistoryRepository(db_session).get_histories_by_word_ids(USER_ID, [WORD_A])
    assert "FOR UPDATE" not in compiled_history_queries[0]


def test_insert_missing_histories_keeps_existing_rows(db_session):
    repo = WordLearningHistoryRepository(db_session)
    build_service(db_session).process_quiz_results(USER_ID, [QuizResult(WORD_A, QuizResultStatus.SUCCESS)])

    repo.insert_missing_histories(USER_ID, [WORD_A, WORD_B])
    db_session.commit()

    histories = repo.get_histories_by_word_ids(USER_ID, [WORD_A, WORD_B])
    assert histories[WORD_A].nb_success == 1
    assert histories[WORD_B].answer_count == 0
    assert histories[WORD_B].learning_status == LearningStatus.NEW
    assert histories[WORD_B].next_review_date is None


def test_update_histories_flushes_changes(db_session):
    repo = WordLearningHistoryRepository(db_session)
    repo.insert_missing_histories(USER_ID, [WORD_A])
    history = repo.get_histories_locked(USER_ID, [WORD_A])[WORD_A]
    history.nb_errors = 1
    history.answer_count = 1

    repo.update_histories([history])
    db_session.expire_all()

    assert load(db_session, WORD_A).nb_errors == 1
