class QuizServiceError(Exception):
    status_code = 500
    default_detail = "Quiz service error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(QuizServiceError):
    """Malformed question/quiz definition. Carries every violation found."""

    status_code = 400
    default_detail = "Validation error"

    def __init__(self, errors: list[str], detail: str | None = None):
        self.errors = list(errors)
        super().__init__(detail)


class MalformedInputError(QuizServiceError):
    status_code = 400
    default_detail = "Malformed input"


class AuthenticationRequiredError(QuizServiceError):
    status_code = 401
    default_detail = "User not authenticated"


class PermissionDeniedError(QuizServiceError):
    status_code = 403
    default_detail = "Not authorized"


class NotFoundError(QuizServiceError):
    status_code = 404
    default_detail = "Not found"


class StorageError(QuizServiceError):
    """Persistence failure. Infrastructure, not a domain error."""

    status_code = 503
    default_detail = "Storage unavailable"
