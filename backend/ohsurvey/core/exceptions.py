"""
Custom Exceptions for OH Noise Survey
=====================================

Use these instead of generic Exception to:
1. Make errors specific and debuggable
2. Map errors to HTTP status codes in one place (see ohsurvey.main)
3. Keep stale-state recovery (reconciliation) separate from user errors

Usage:
    from ohsurvey.core.exceptions import SurveyNotFoundError, ReadOnlySurveyError

    if row is None:
        raise SurveyNotFoundError(survey_id)

    if session.read_only:
        raise ReadOnlySurveyError(survey_id)
"""

from typing import Optional, Any, Dict


class SurveyAppError(Exception):
    """Base exception for all survey application errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(SurveyAppError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(SurveyAppError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(SurveyAppError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class SurveyNotFoundError(ResourceNotFoundError):
    """Survey not found (or not owned by the caller)"""

    def __init__(self, survey_id: str):
        super().__init__("Survey", survey_id)


class UserNotFoundError(ResourceNotFoundError):
    """User not found"""

    def __init__(self, user_id: str):
        super().__init__("User", user_id)


class EquipmentNotFoundError(ResourceNotFoundError):
    """Equipment item not found on the survey"""

    def __init__(self, equipment_id: str):
        super().__init__("Equipment", equipment_id)


class AreaNotFoundError(ResourceNotFoundError):
    """Area path does not resolve against the current area tree"""

    def __init__(self, path_key: str):
        super().__init__("Area", path_key)


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(SurveyAppError):
    """Input validation failed"""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidAreaPathError(ValidationError):
    """Area path is structurally invalid (negative index, ss without sub)"""

    def __init__(self, message: str = "Invalid area path"):
        super().__init__(message, field="path")
        self.code = "INVALID_AREA_PATH"


class AreaPathParseError(ValidationError):
    """A stored key could not be parsed back into an area path"""

    def __init__(self, raw: Any, reason: str = "not a canonical area path"):
        super().__init__(f"Cannot parse area path {raw!r}: {reason}")
        self.code = "AREA_PATH_PARSE_ERROR"
        self.details["raw"] = str(raw)[:200]


class InvalidAreaOperationError(ValidationError):
    """Area tree edit is not allowed (e.g. nesting below a sub-sub area)"""

    def __init__(self, message: str):
        super().__init__(message, field="areas")
        self.code = "INVALID_AREA_OPERATION"


class InvalidPatchError(ValidationError):
    """Patch names a field the survey aggregate does not have"""

    def __init__(self, fields: list):
        super().__init__(f"Cannot patch field(s): {', '.join(sorted(fields))}")
        self.code = "INVALID_PATCH"
        self.details["fields"] = sorted(fields)


class UnknownCategoryError(ValidationError):
    """Store category name is not registered"""

    def __init__(self, category: str, allowed: list):
        super().__init__(
            f"Unknown store category '{category}'. Allowed: {', '.join(allowed)}",
            field="category"
        )
        self.code = "UNKNOWN_CATEGORY"
        self.details["allowed"] = allowed


# ============================================
# State Errors (409-type)
# ============================================

class ReadOnlySurveyError(SurveyAppError):
    """Write attempted on a survey opened in view-only mode"""

    status_code = 409

    def __init__(self, survey_id: str = ""):
        super().__init__(
            "Survey is open in view-only mode",
            code="SURVEY_READ_ONLY",
            details={"survey_id": survey_id} if survey_id else {}
        )


# ============================================
# Persistence Errors
# ============================================

class PersistenceError(SurveyAppError):
    """Saving a survey to durable storage failed"""

    status_code = 503

    def __init__(self, survey_id: str, message: str = "Save failed"):
        super().__init__(f"Failed to persist survey '{survey_id}': {message}", code="PERSISTENCE_ERROR")
        self.details["survey_id"] = survey_id


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: SurveyAppError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
