import enum

from sqlalchemy import Column, String, ForeignKey, Table, Enum
from sqlalchemy.orm import relationship

from kotoquiz.models.base import Base, BaseModel


word_tag = Table(
    "word_tag",
    Base.metadata,
    Column("word_id", String(36), ForeignKey("words.id", ondelete="CASCADE"), primary_key=True),
    Column("label_id", String(36), ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True),
)

word_level = Table(
    "word_level",
    Base.metadata,
    Column("word_id", String(36), ForeignKey("words.id", ondelete="CASCADE"), primary_key=True),
    Column("level_id", String(36), ForeignKey("levels.id", ondelete="CASCADE"), primary_key=True),
)


class YomiType(str, enum.Enum):
    ONYOMI = "ONYOMI"
    KUNYOMI = "KUNYOMI"


"""
词汇模型
存储汉字、读音、读音类型、图片地址，以及翻译、标签和等级的关联。
"""


class Word(BaseModel):
    __tablename__ = "words"

    kanji = Column(String(50))
    yomi = Column(String(50))
    yomi_type = Column(Enum(YomiType, native_enum=False, length=50))
    image_url = Column(String(255))
    translation_id = Column(String(36), ForeignKey("labels.id"))

    translation = relationship("Label", foreign_keys=[translation_id])
    tags = relationship("Label", secondary=word_tag)
    levels = relationship("Level", secondary=word_level)
