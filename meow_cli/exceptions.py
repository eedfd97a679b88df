"""Custom exceptions for Meow CLI."""


class MeowError(Exception):
    """Base exception for Meow CLI."""

    pass


class ConfigurationError(MeowError):
    """Configuration-related errors (missing credentials, bad values)."""

    pass


class LLMError(MeowError):
    """Remote model errors."""

    pass


class LLMAPIError(LLMError):
    """Remote model answered with a non-success HTTP status."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class LLMTransportError(LLMError):
    """Remote model could not be reached (network, timeout, bad payload)."""

    pass


class ToolError(MeowError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class SessionError(MeowError):
    """Session-related errors."""

    pass


class SessionNotFoundError(SessionError):
    """Session not found."""

    def __init__(self, name: str):
        super().__init__(f"Session not found: {name}")
        self.name = name


class SessionExistsError(SessionError):
    """Session name already taken."""

    def __init__(self, name: str):
        super().__init__(f"Session already exists: {name}")
        self.name = name


class SessionImportError(SessionError):
    """Imported session blob is malformed."""

    pass
