import logging
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from kotoquiz.config.settings import settings
from kotoquiz.utils.database import get_db, UnitOfWork
from kotoquiz.utils.exceptions import ValidationError, StorageError
from kotoquiz.repositories.word_learning_history_repository import WordLearningHistoryRepository
from kotoquiz.scheduling.state_machine import LearningStateMachine
from kotoquiz.services.quiz_result_service import QuizResultService
from kotoquiz.api.schemas.quiz_schemas import QuizResultsRequest, QuizResultsResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def get_quiz_result_service(db: Session = Depends(get_db)) -> QuizResultService:
    state_machine = LearningStateMachine(
        min_review_interval=timedelta(minutes=settings.MIN_REVIEW_INTERVAL_MINUTES)
    )
    return QuizResultService(
        history_repo=WordLearningHistoryRepository(db),
        unit_of_work=UnitOfWork(db),
        state_machine=state_machine,
    )


@router.post("/results", response_model=QuizResultsResponse)
def process_quiz_results(
    quiz_results: QuizResultsRequest,
    service: QuizResultService = Depends(get_quiz_result_service)
):
    """
    提交测验结果，更新用户的学习历史
    """
    if len(quiz_results.results) > settings.MAX_QUIZ_RESULTS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"too many results, max {settings.MAX_QUIZ_RESULTS}"
        )
    try:
        processed = service.process_quiz_results(
            quiz_results.user_id,
            [result.to_domain() for result in quiz_results.results]
        )
        return QuizResultsResponse(processed=processed)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(f"处理测验结果失败: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="处理测验结果失败"
        )
