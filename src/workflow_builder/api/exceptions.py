"""Exceptions for the workflow builder API.

Construction failures are programmer errors in how the builder is used and
are raised at the offending call. Structural problems in an assembled graph
are never raised; they are reported by ``validate()`` instead.
"""


class BuildError(Exception):
    """Raised when a builder call cannot be honoured.

    Common causes:

    - Referencing a step id that has not been added
    - Adding a step whose id is already taken
    - Invalid policy values (non-positive timeouts, negative retries)
    - Step definitions that do not match any step variant

    Example:
        >>> try:
        ...     builder.set_timeout("fetch-dta", 5000)
        ... except BuildError as e:
        ...     print(e)
        Step 'fetch-dta' not found. Did you mean: 'fetch-data'?
    """

    pass


class StepNotFoundError(BuildError):
    """Raised when a mutation references a step id that does not exist."""

    def __init__(self, message: str, step_id: str):
        """Initialize with message and the missing id.

        Args:
            message: Human-readable error message
            step_id: The id that could not be resolved
        """
        super().__init__(message)
        self.step_id = step_id


class DuplicateStepError(BuildError):
    """Raised when an added step reuses an existing step id."""

    def __init__(self, message: str, step_id: str):
        super().__init__(message)
        self.step_id = step_id


class TemplateNotFoundError(BuildError):
    """Raised when a predefined template name is not registered."""

    pass


class TemplateParameterError(BuildError):
    """Raised when a template is instantiated without its required parameters."""

    def __init__(self, message: str, missing: list[str]):
        super().__init__(message)
        self.missing = missing
