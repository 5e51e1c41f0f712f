"""Engine exception types. Provider transport errors live in providers/base.py."""


class ConfigurationError(Exception):
    """Missing persona, instruction set, template or provider credential. Never retried."""


class StructuredOutputError(Exception):
    """Model text could not be recovered into the expected structured object."""

    def __init__(self, message: str, raw_text: str) -> None:
        self.raw_text = raw_text
        super().__init__(message)


class ValidationError(Exception):
    """A workflow-creation request was rejected before anything was persisted."""
