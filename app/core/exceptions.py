"""
Domain exceptions raised by the service layer.
Endpoints translate them into HTTP errors.
"""


class NotFoundError(ValueError):
    """Referenced row does not exist (or is outside the caller's organization)"""


class InvalidTransitionError(ValueError):
    """Status change not allowed by the entity's state machine"""

    def __init__(self, entity: str, current: str, requested: str):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(f"Invalid {entity} transition: {current} -> {requested}")


class TemplateValidationError(ValueError):
    """Survey or SOP template content is malformed"""


class SubmissionValidationError(ValueError):
    """Survey responses do not fit the template they answer"""
