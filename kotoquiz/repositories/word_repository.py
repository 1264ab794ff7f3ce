from typing import List
from sqlalchemy.orm import Session, selectinload

from kotoquiz.models.word import Word, word_tag, word_level
from kotoquiz.models.level import Level, level_values
from kotoquiz.repositories.base import BaseRepository


class WordRepository(BaseRepository[Word]):
    def __init__(self, db: Session):
        super().__init__(db, Word)

    def list_word_ids(self, tag_ids: List[str], level_name_ids: List[str], nb: int = -1) -> List[str]:
        """
        根据标签与等级名称筛选词汇ID（不区分用户）

        两类筛选条件同时给出时取交集；都为空时返回整个词库。
        nb > 0 时限制返回数量，否则返回全部。
        """
        query = self.db.query(Word.id).distinct()
        if tag_ids:
            query = query.join(word_tag, word_tag.c.word_id == Word.id).filter(
                word_tag.c.label_id.in_(tag_ids)
            )
        if level_name_ids:
            query = query.join(word_level, word_level.c.word_id == Word.id).join(
                level_values, level_values.c.level_id == word_level.c.level_id
            ).filter(level_values.c.label_id.in_(level_name_ids))
        if nb > 0:
            query = query.limit(nb)
        return [row[0] for row in query.all()]

    def list_words_by_ids(self, ids: List[str]) -> List[Word]:
        """根据ID列表获取词汇，预加载翻译、标签与等级"""
        if not ids:
            return []
        return self.db.query(Word).options(
            selectinload(Word.translation),
            selectinload(Word.tags),
            selectinload(Word.levels).selectinload(Level.category),
            selectinload(Word.levels).selectinload(Level.level_names),
        ).filter(Word.id.in_(ids)).all()
