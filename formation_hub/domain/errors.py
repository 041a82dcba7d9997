"""
formation_hub.domain.errors — Exceptions raised by the service layer.

Each error carries the HTTP status the application's exception handler
answers with; see ``formation_hub.app``.
"""


class FormationHubError(Exception):
    """Base class for every error raised by the service layer."""
    status_code = 400


class UnauthorizedError(FormationHubError):
    """No signed-in user for an operation that needs one."""
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(FormationHubError):
    """The signed-in user does not own the resource."""
    status_code = 403

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class FormationNotFoundError(FormationHubError):
    status_code = 404

    def __init__(self, formation_id: int):
        self.formation_id = formation_id
        super().__init__("Formation not found")


class UserNotFoundError(FormationHubError):
    status_code = 404

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class AlreadyVotedError(FormationHubError):
    status_code = 409

    def __init__(self, formation_id: int):
        self.formation_id = formation_id
        super().__init__("Already voted for this formation")


class InvalidArtifactError(FormationHubError):
    """Unknown artifact id or a level outside ``[0, max_level]``."""
    status_code = 422
