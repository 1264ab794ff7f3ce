from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from typing import List
from uuid import UUID

from kotoquiz.scheduling.state_machine import QuizResult, QuizResultStatus


class WordQuizResult(BaseModel):
    word_id: UUID = Field(alias="wordId")
    status: QuizResultStatus = Field(validation_alias=AliasChoices("type", "status"))

    model_config = ConfigDict(
        populate_by_name=True
    )

    def to_domain(self) -> QuizResult:
        return QuizResult(word_id=str(self.word_id), status=self.status)


class QuizResultsRequest(BaseModel):
    user_id: str = Field(alias="userId", min_length=1)
    results: List[WordQuizResult] = []

    model_config = ConfigDict(
        populate_by_name=True
    )


class QuizResultsResponse(BaseModel):
    processed: int
