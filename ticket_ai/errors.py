"""
Assistant error taxonomy

Every collaborator adapter translates library exceptions into one of these
classes; handler boundaries catch them and turn them into chat messages.
"""

from typing import Optional, Dict, Any, List

from .schemas.ai_schemas import AIAction


class AssistantError(Exception):
    """Base exception for the assistant engine"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class UpstreamError(AssistantError):
    """Generation backend failed in a way rotation cannot fix"""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        super().__init__(message, details)


class TransientUpstreamError(UpstreamError):
    """Quota exceeded, rate limited or credential rejected (retry with next key)"""


class DataFetchError(AssistantError):
    """Data API unreachable or returned an error"""

    def __init__(self, resource: str, message: str, status_code: Optional[int] = None):
        self.resource = resource
        self.status_code = status_code
        super().__init__(message, {"resource": resource, "status_code": status_code})


class AuthorizationError(AssistantError):
    """Caller lacks the login or role required for this turn"""

    def __init__(self, message: str, corrective_action: Optional[AIAction] = None,
                 suggestions: Optional[List[str]] = None):
        self.corrective_action = corrective_action
        self.suggestions = suggestions or []
        super().__init__(message)


class ResolutionError(AssistantError):
    """No matching event or ticket type could be resolved"""

    def __init__(self, message: str, alternatives: Optional[List[Dict[str, Any]]] = None,
                 suggestions: Optional[List[str]] = None):
        self.alternatives = alternatives or []
        self.suggestions = suggestions or []
        super().__init__(message)


class UnclassifiedInputError(AssistantError):
    """Input matched no intent rule; routed to free-form generation"""
