"""Exception hierarchy for the job mailer.

Errors raised while handling one job (resume, generation, dispatch) are
captured by the processor and written into that job. Store errors are not
wrapped and propagate as ``sqlite3.Error``.
"""


class JobMailerError(Exception):
    """Base class for all job mailer errors."""


class JobNotFoundError(JobMailerError, LookupError):
    """No job exists with the requested id."""


class InvalidTransitionError(JobMailerError, ValueError):
    """A status change would break the job lifecycle."""


class ResumeError(JobMailerError):
    """The resume could not be obtained. Fatal for the job."""


class ResumeNotFoundError(ResumeError, FileNotFoundError):
    """The resume path points at a file that does not exist."""


class ResumeFetchError(ResumeError):
    """The resume could not be downloaded or read."""


class GenerationError(JobMailerError):
    """The email content could not be generated."""


class DispatchError(JobMailerError):
    """The email could not be sent."""


class CredentialsMissingError(DispatchError):
    """No mail relay credentials were supplied or configured."""
