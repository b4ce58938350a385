"""Error taxonomy for WordPress calls and the content lifecycle."""


class ErrorKind:
    CREDENTIALS = "credentials"
    PERMISSIONS = "permissions"
    CONNECTIVITY = "connectivity"
    CORS = "cors"
    BAD_REQUEST = "bad-request"
    SERVER_ERROR = "server-error"
    TIMEOUT = "timeout"
    NOT_CONFIGURED = "not-configured"
    IN_PROGRESS = "in-progress"
    INVALID_STATE = "invalid-state"
    INVALID_DATE = "invalid-date"
    NOT_FOUND = "not-found"

    RETRYABLE = frozenset({CONNECTIVITY, SERVER_ERROR, TIMEOUT})

    DEFAULT_MESSAGES = {
        CREDENTIALS: "Invalid credentials. Check the username and Application Password.",
        PERMISSIONS: "The WordPress user lacks permission. Use an Administrator or Editor account.",
        CONNECTIVITY: "The WordPress site is unreachable. Check the URL and your connection.",
        CORS: "The site is online but its REST API is blocked by a security policy.",
        BAD_REQUEST: "WordPress rejected the request data.",
        SERVER_ERROR: "The WordPress server returned an internal error.",
        TIMEOUT: "WordPress took too long to answer. The site may be slow.",
        NOT_CONFIGURED: "This site has no WordPress credentials configured.",
        IN_PROGRESS: "An operation for this article is already running.",
        INVALID_STATE: "The article is already published or scheduled.",
        INVALID_DATE: "The scheduled date must be in the future.",
        NOT_FOUND: "Article not found.",
    }

    @classmethod
    def is_retryable(cls, kind: str | None) -> bool:
        return kind in cls.RETRYABLE

    @classmethod
    def default_message(cls, kind: str | None) -> str:
        return cls.DEFAULT_MESSAGES.get(kind, "Unknown WordPress error.")


class WordPressError(Exception):
    """Base for categorized WordPress failures."""

    kind = ErrorKind.SERVER_ERROR

    def __init__(self, message: str = "", status_code: int | None = None, details=None):
        self.message = message or ErrorKind.default_message(self.kind)
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return ErrorKind.is_retryable(self.kind)


class AuthenticationError(WordPressError):
    kind = ErrorKind.CREDENTIALS


class PermissionDeniedError(WordPressError):
    kind = ErrorKind.PERMISSIONS


class BlockedError(WordPressError):
    kind = ErrorKind.CORS


class BadRequestError(WordPressError):
    kind = ErrorKind.BAD_REQUEST


class ConnectivityError(WordPressError):
    kind = ErrorKind.CONNECTIVITY


class ServerError(WordPressError):
    kind = ErrorKind.SERVER_ERROR


class RequestTimeoutError(WordPressError):
    kind = ErrorKind.TIMEOUT


class SiteNotConfiguredError(WordPressError):
    kind = ErrorKind.NOT_CONFIGURED


class GenerationError(Exception):
    """The article generator could not produce content."""


class InvalidTransitionError(Exception):
    """A lifecycle move that the idea/article state machine forbids."""
