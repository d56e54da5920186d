"""
Exception hierarchy for dc-cli.

Every error raised by the core derives from ``DcCliError`` so the CLI
boundary can catch one type, print the message and exit non-zero.

Kinds:

- ``FatalConfigurationError`` -- conflicting flags, malformed filters,
  invalid configuration.  Raised before any remote call is made.
- ``NotFoundError`` -- missing remote entity, log file, mapping file
  or export directory.
- ``RemoteOperationError`` -- the hub rejected a call.  Inside entity
  loops this is recorded per entity instead of aborting the command.
- ``ConsistencyError`` -- id mapping collisions or circular groups
  that cannot be written safely.  Never ignorable.
- ``OperationAbortedError`` -- the user declined a confirmation prompt.
"""


class DcCliError(Exception):
    """
    Base exception for all dc-cli errors.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize the error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class FatalConfigurationError(DcCliError):
    """
    Invalid flags, filters or configuration values.
    """

    pass


class NotFoundError(DcCliError):
    """
    A requested entity or file does not exist.
    """

    pass


class RemoteOperationError(DcCliError):
    """
    A create/update/archive/unarchive call was rejected by the hub.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, context)
        self.status_code = status_code


class ConsistencyError(DcCliError):
    """
    Proceeding would corrupt the destination hub's reference graph.
    """

    pass


class OperationAbortedError(DcCliError):
    """
    The user declined to continue at a confirmation prompt.
    """

    pass
