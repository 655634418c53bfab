import enum


class Role(str, enum.Enum):
    student = "student"
    teacher = "teacher"
    admin = "admin"


class EvaluationStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    done = "done"
    failed = "failed"
