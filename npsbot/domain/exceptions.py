from typing import Optional


class SurveyError(Exception):
    """Base class for every error raised by the survey core."""


class CodeNotFound(SurveyError):
    def __init__(self, code: str):
        super().__init__(f"Survey code {code!r} does not exist")
        self.code = code


class CodeAlreadyCompleted(SurveyError):
    def __init__(self, code: str):
        super().__init__(f"Survey code {code!r} is already completed")
        self.code = code


class CodeGenerationError(SurveyError):
    pass


class StepValidationError(SurveyError):
    """Raised when the value given for a step does not pass its check.

    Never reaches the database; handlers show ``message`` inline and keep
    the respondent on the same step.
    """

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage
        self.message = message


class InvalidTransitionError(SurveyError):
    pass


class TerminalStageError(InvalidTransitionError):
    pass


class SurveyCompletionError(SurveyError):
    def __init__(self, code: str, cause: Optional[BaseException] = None):
        super().__init__(f"Could not complete survey for code {code!r}")
        self.code = code
        self.cause = cause
