class VolunteerHubError(Exception):
    """Base class for errors surfaced to callers of the job board and lifecycle core."""
    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class ValidationError(VolunteerHubError):
    status_code = 400


class AuthenticationError(VolunteerHubError):
    status_code = 401


class Forbidden(VolunteerHubError):
    status_code = 403


class NotFound(VolunteerHubError):
    status_code = 404


class Conflict(VolunteerHubError):
    status_code = 409


class JobFull(Conflict):
    def __init__(self, message='This job is full. No more applications accepted.'):
        super().__init__(message)


class InvalidTransition(VolunteerHubError):
    status_code = 409


class StorageError(VolunteerHubError):
    status_code = 500
