"""
Tracking Errors
Typed failures raised by the session store and lifecycle service
"""

from typing import Optional


class TrackingError(Exception):
    """Base class for every failure the tracker reports to its callers"""

    user_message = "Something went wrong with your session."

    def __init__(self, message: Optional[str] = None, user_message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class ConflictError(TrackingError):
    """An open session already exists for the user in this guild"""

    user_message = "You already have an active session."

    def __init__(self, user_id: str, guild_id: str, session_id: Optional[str] = None):
        super().__init__(f"Open session already exists for user {user_id} in guild {guild_id}")
        self.user_id = user_id
        self.guild_id = guild_id
        self.session_id = session_id


class NotFoundError(TrackingError):
    user_message = "You have no active session."

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} does not exist")
        self.session_id = session_id


class InvalidStateError(TrackingError):
    """The requested event is not a legal transition from the session's status"""

    user_message = "That action is not possible for your session right now."


class AlreadyPausedError(InvalidStateError):
    user_message = "Your session is already paused."


class NotPausedError(InvalidStateError):
    user_message = "Your session is not paused."


class NoOpenSessionError(TrackingError):
    user_message = "You have no active session."

    def __init__(self, user_id: str, guild_id: str):
        super().__init__(f"No open session for user {user_id} in guild {guild_id}")
        self.user_id = user_id
        self.guild_id = guild_id


class StorageError(TrackingError):
    """The backing store failed; callers decide whether to retry"""

    user_message = "Session storage is unavailable right now. Please try again later."


class RateLimitedError(TrackingError):
    user_message = "You're going too fast! Please slow down."


class ChannelRestrictedError(TrackingError):
    """Tracking is limited to another channel of the guild"""

    def __init__(self, channel_id: str):
        super().__init__(
            f"Tracking is restricted to channel {channel_id}",
            user_message=f"Time tracking is only allowed in <#{channel_id}>."
        )
        self.channel_id = channel_id
