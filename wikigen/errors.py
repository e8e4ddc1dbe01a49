class WikigenError(Exception):
    pass


class ConfigError(WikigenError):
    pass


class ParseError(WikigenError):
    pass


class NetworkError(WikigenError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationError(WikigenError):
    def __init__(self, message: str, *, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class MappingError(ValidationError):
    """Raised when a raw label has no canonical value and no fallback applies."""


class WriteError(WikigenError):
    pass
