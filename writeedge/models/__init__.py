# writeedge/models/__init__.py

from .user import User
from .test import Test, Question
from .submission import Submission, Answer
from .test_evaluation import TestEvaluation

__all__ = [
    "User",
    "Test",
    "Question",
    "Submission",
    "Answer",
    "TestEvaluation",
]
