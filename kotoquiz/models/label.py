from sqlalchemy import Column, String

from kotoquiz.models.base import BaseModel


"""
标签模型
同时用作词汇翻译、标签（tag）、等级分类与等级名称，按 type 区分。
"""


class Label(BaseModel):
    __tablename__ = "labels"

    en = Column(String(255))
    fr = Column(String(255))
    type = Column(String(100))

    def translate(self, lang: str) -> str:
        """按语言返回文本，未知语言回退到英文"""
        if lang == "fr" and self.fr:
            return self.fr
        return self.en or ""

