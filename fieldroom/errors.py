"""Room error taxonomy.

Handlers raise these; the dispatch boundary in RoomHandler turns them into
``error`` events for the originating session.
"""

from typing import Optional


class RoomError(Exception):
    """Base class for errors reported back to room participants."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RoomError):
    """A required field is missing or invalid."""


class NotFoundError(RoomError):
    """A referenced meeting could not be resolved."""


class MembershipError(RoomError):
    """A meeting membership precondition was violated."""


class AlreadyMemberError(MembershipError):
    pass


class NotMemberError(MembershipError):
    pass


class UpstreamError(RoomError):
    """The completion endpoint failed or could not be reached."""

    def __init__(self, status: Optional[int], body: str):
        if status is None:
            message = f"Completion API unreachable: {body}"
        else:
            message = f"Completion API error {status}: {body}"
        super().__init__(message)
        self.status = status
        self.body = body
