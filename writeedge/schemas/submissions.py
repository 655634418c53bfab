from typing import Annotated, List
from pydantic import BaseModel, Field, StringConstraints


class AnswerIn(BaseModel):
    questionId: int
    answerText: Annotated[str, StringConstraints(strip_whitespace=True)]


class SubmitTestRequest(BaseModel):
    testId: int
    studentId: int
    answers: List[AnswerIn] = Field(default_factory=list)


class SubmitTestResponse(BaseModel):
    success: bool = True
    submissionId: int
