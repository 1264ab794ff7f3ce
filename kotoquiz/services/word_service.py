import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from kotoquiz.models.word import Word
from kotoquiz.repositories.word_repository import WordRepository
from kotoquiz.utils.exceptions import StorageError, ValidationError
from kotoquiz.utils.helpers import is_valid_uuid

logger = logging.getLogger(__name__)

SUPPORTED_LANGS = ("en", "fr")


class WordService:
    """词汇内容服务，把选中的词汇ID转换为客户端展示用的数据"""

    def __init__(self, word_repo: WordRepository):
        self.word_repo = word_repo

    def list_words_by_ids(self, ids: List[str], lang: str = "en") -> List[Dict[str, Any]]:
        """
        按ID列表获取词汇，保持请求中的顺序

        已被删除的词汇直接忽略，不视为错误。
        """
        if lang not in SUPPORTED_LANGS:
            raise ValidationError(f"unsupported lang: {lang!r}")
        for word_id in ids:
            if not is_valid_uuid(word_id):
                raise ValidationError(f"invalid word id: {word_id!r}")
        if not ids:
            return []

        try:
            words = self.word_repo.list_words_by_ids(ids)
        except SQLAlchemyError as e:
            logger.error(f"获取词汇失败: {e}")
            raise StorageError(str(e)) from e

        by_id = {word.id: word for word in words}
        ordered = [by_id[word_id] for word_id in dict.fromkeys(ids) if word_id in by_id]
        return [self._to_dto(word, lang) for word in ordered]

    def read_word(self, word_id: str, lang: str = "en") -> Optional[Dict[str, Any]]:
        """获取单个词汇，不存在时返回 None"""
        if lang not in SUPPORTED_LANGS:
            raise ValidationError(f"unsupported lang: {lang!r}")
        if not is_valid_uuid(word_id):
            raise ValidationError(f"invalid word id: {word_id!r}")

        try:
            word = self.word_repo.get_by_id(word_id)
        except SQLAlchemyError as e:
            logger.error(f"获取词汇失败: {e}")
            raise StorageError(str(e)) from e
        return self._to_dto(word, lang) if word else None

    @staticmethod
    def _to_dto(word: Word, lang: str) -> Dict[str, Any]:
        return {
            "id": word.id,
            "kanji": word.kanji,
            "yomi": word.yomi,
            "yomiType": word.yomi_type.value if word.yomi_type else None,
            "imageUrl": word.image_url,
            "translation": word.translation.translate(lang) if word.translation else "",
            "tags": [tag.translate(lang) for tag in word.tags],
            "levels": [
                {
                    "category": level.category.translate(lang) if level.category else "",
                    "levelNames": [name.translate(lang) for name in level.level_names],
                }
                for level in word.levels
            ],
        }
