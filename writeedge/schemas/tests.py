from datetime import datetime
from typing import Annotated, List, Optional
from pydantic import BaseModel, Field, StringConstraints


StrippedStr = Annotated[str, StringConstraints(min_length=1, strip_whitespace=True)]


class QuestionIn(BaseModel):
    text: StrippedStr = Field(..., description="Question prompt shown to the student")
    order: Optional[int] = Field(None, ge=1, description="1-based position; defaults to list order")
    wordLimit: Optional[int] = Field(None, ge=1)


class CreateTestRequest(BaseModel):
    testName: StrippedStr
    description: Optional[str] = None
    startTime: Optional[datetime] = None
    attemptDeadline: Optional[datetime] = None
    timeLimit: Optional[int] = Field(None, ge=1, description="Minutes")
    questions: List[QuestionIn] = Field(..., min_length=1)
    teacherId: int
