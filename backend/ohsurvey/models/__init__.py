# Re-export all models for convenient imports
from ohsurvey.models.user import User, UserRole
from ohsurvey.models.survey import Survey

__all__ = [
    "User",
    "UserRole",
    "Survey",
]
