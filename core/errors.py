"""
Exception hierarchy shared by the service layer.

Services raise these; Streamlit pages catch ``ClinicError`` and show a
toast naming the failed action.
"""


class ClinicError(Exception):
    """Base class for all errors raised by the services package."""


class ValidationError(ClinicError, ValueError):
    """Input rejected before anything was written."""


class NotFoundError(ClinicError, LookupError):
    """A referenced row does not exist."""


class PackageDepletedError(ClinicError):
    """A session was requested from a package with none remaining."""

    def __init__(self, package_id: int):
        super().__init__(f"Package {package_id} has no sessions remaining.")
        self.package_id = package_id


class VisitLockedError(ClinicError):
    """The visit has been completed and locked against clinical edits."""

    def __init__(self, visit_id: int):
        super().__init__(f"Visit {visit_id} is locked.")
        self.visit_id = visit_id


class VisitCompletionError(ClinicError):
    """Visit completion failed and was rolled back.

    ``step`` names the stage that failed: ``visit``, ``treatments``,
    ``lock`` or ``consumables``.
    """

    def __init__(self, visit_id: int, step: str, cause: Exception | None = None):
        super().__init__(f"Completing visit {visit_id} failed at step '{step}'.")
        self.visit_id = visit_id
        self.step = step
        self.cause = cause


class MessagingError(ClinicError):
    """An outbound messaging or call function failed."""


class PersistenceError(ClinicError):
    """A database write failed; the session was rolled back."""
