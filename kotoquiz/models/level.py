from sqlalchemy import Column, String, ForeignKey, Table
from sqlalchemy.orm import relationship

from kotoquiz.models.base import Base, BaseModel


# 等级 <-> 等级名称 多对多
level_values = Table(
    "level_values",
    Base.metadata,
    Column("level_id", String(36), ForeignKey("levels.id", ondelete="CASCADE"), primary_key=True),
    Column("label_id", String(36), ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True),
)


"""
等级模型
一个等级属于某个分类（例如 JLPT），并带有若干等级名称（例如 N5）。
"""


class Level(BaseModel):
    __tablename__ = "levels"

    category_id = Column(String(36), ForeignKey("labels.id"))

    category = relationship("Label", foreign_keys=[category_id])
    level_names = relationship("Label", secondary=level_values)
