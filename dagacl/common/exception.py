from typing import Any, Optional


class DagACLException(Exception):
    """Base class for all dagacl exceptions"""

    _msg_fmt = "An unknown exception occurred."

    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        if not message:
            message = self._msg_fmt % kwargs

        super().__init__(message)


class ACLConfigurationError(DagACLException):
    _msg_fmt = "Invalid ACL configuration."


class GroupLookupError(DagACLException, LookupError):
    """Raised by group mapping providers when the groups of a user cannot be
    resolved. The ACL manager treats it as "no groups" for a single check."""

    _msg_fmt = "Failed to resolve groups for user %(user)s."
