import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from kotoquiz.config.settings import settings
from kotoquiz.utils.database import get_db
from kotoquiz.utils.exceptions import ValidationError, StorageError
from kotoquiz.utils.helpers import split_query_list
from kotoquiz.repositories.word_repository import WordRepository
from kotoquiz.repositories.word_learning_history_repository import WordLearningHistoryRepository
from kotoquiz.scheduling.prioritizer import WordPrioritizer
from kotoquiz.services.word_selection_service import WordSelectionService
from kotoquiz.services.word_service import WordService
from kotoquiz.api.schemas.word_schemas import WordIdsList, WordDTO

logger = logging.getLogger(__name__)
router = APIRouter()


def get_word_selection_service(db: Session = Depends(get_db)) -> WordSelectionService:
    return WordSelectionService(
        word_repo=WordRepository(db),
        history_repo=WordLearningHistoryRepository(db),
        prioritizer=WordPrioritizer(group_size=settings.SHUFFLE_GROUP_SIZE),
    )


def get_word_service(db: Session = Depends(get_db)) -> WordService:
    return WordService(WordRepository(db))


@router.get("/q", response_model=WordIdsList)
def list_word_ids(
    user_id: Optional[str] = Query(None, alias="userId", description="用户ID，为空时随机抽样"),
    tags: Optional[str] = Query(None, description="逗号分隔的标签ID"),
    level_names: Optional[str] = Query(None, alias="levelNames", description="逗号分隔的等级名称ID"),
    nb: int = Query(settings.DEFAULT_NB_WORDS, description="返回数量"),
    service: WordSelectionService = Depends(get_word_selection_service)
):
    """
    选择用户接下来要测验的词汇ID
    """
    try:
        ids = service.select_words(
            user_id,
            split_query_list(tags),
            split_query_list(level_names),
            min(nb, settings.MAX_NB_WORDS)
        )
        return WordIdsList(ids=ids)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(f"选词失败: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="选词失败"
        )


@router.get("", response_model=List[WordDTO])
def list_words(
    ids: Optional[str] = Query(None, description="逗号分隔的词汇ID"),
    lang: str = Query("en", description="翻译语言"),
    service: WordService = Depends(get_word_service)
):
    """
    按ID获取词汇内容
    """
    try:
        return service.list_words_by_ids(split_query_list(ids), lang)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(f"获取词汇失败: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="获取词汇失败"
        )


@router.get("/{word_id}", response_model=WordDTO)
def read_word(
    word_id: str,
    lang: str = Query("en", description="翻译语言"),
    service: WordService = Depends(get_word_service)
):
    """
    获取单个词汇内容
    """
    try:
        word = service.read_word(word_id, lang)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageError as e:
        logger.error(f"获取词汇失败: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="获取词汇失败"
        )
    if not word:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="词汇不存在")
    return word
