"""Typed errors raised by the application service.

These are user-actionable and are returned to callers verbatim; the web
layer maps ``status_code`` and ``to_dict()`` onto the JSON response.
"""


class ApplicationError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class InvalidTransition(ApplicationError):
    def __init__(self, message: str, current_status: str):
        super().__init__(message)
        self.current_status = current_status

    def to_dict(self) -> dict:
        return {"error": self.message, "current_status": self.current_status}


class DuplicateApplication(ApplicationError):
    def __init__(self, message: str = "You have already applied to this job"):
        super().__init__(message)


class AlreadyContacted(ApplicationError):
    def __init__(self, message: str = "You have already contacted this candidate", current_status: str = ""):
        super().__init__(message)
        self.current_status = current_status

    def to_dict(self) -> dict:
        data = {"error": self.message}
        if self.current_status:
            data["current_status"] = self.current_status
        return data


class NoPublishedJobs(ApplicationError):
    def __init__(self, message: str = "You need at least one published job to contact candidates"):
        super().__init__(message)


class AmbiguousJob(ApplicationError):
    """More than one published job; the caller must pick one and retry."""

    def __init__(self, jobs: list[dict], message: str = "Please select a job"):
        super().__init__(message)
        self.jobs = jobs

    def to_dict(self) -> dict:
        return {"error": self.message, "jobs": self.jobs}


class Forbidden(ApplicationError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFound(ApplicationError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ConcurrentModification(ApplicationError):
    status_code = 409

    def __init__(self, message: str = "The application was modified concurrently. Please reload and retry."):
        super().__init__(message)


class ValidationError(ApplicationError):
    pass


class StatusInvariantError(RuntimeError):
    """A code path was about to persist a status that breaks a hard invariant."""
