# SQLAlchemy models
from .base import Base
from .curriculum import Homework, TrainingCategory, TrainingModule
from .homework import AttributionEvent, HomeworkSubmission, SubmissionProgress
from .social import AutomationFlow, SocialAccount

__all__ = [
    # Base
    "Base",
    # Curriculum
    "TrainingCategory",
    "TrainingModule",
    "Homework",
    # Social
    "SocialAccount",
    "AutomationFlow",
    # Homework
    "HomeworkSubmission",
    "SubmissionProgress",
    "AttributionEvent",
]
