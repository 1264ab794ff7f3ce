from pydantic import BaseModel
from typing import List, Optional


class WordIdsList(BaseModel):
    ids: List[str]


class LevelDTO(BaseModel):
    category: str
    levelNames: List[str]


class WordDTO(BaseModel):
    id: str
    kanji: Optional[str] = None
    yomi: Optional[str] = None
    yomiType: Optional[str] = None
    imageUrl: Optional[str] = None
    translation: str
    tags: List[str]
    levels: List[LevelDTO]
