from typing import Annotated, Optional
from pydantic import BaseModel, StringConstraints

class EvaluationRequest(BaseModel):
    submissionId: int

class WritingEvaluationRequest(BaseModel):
    text: Annotated[str, StringConstraints(min_length=1, strip_whitespace=True)]
    studentName: Optional[str] = None
    teacherName: Optional[str] = None
    studentId: Optional[int] = None
