"""Exception hierarchy for the fraud scoring engine."""


class FraudEngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(FraudEngineError):
    """A transaction context field is malformed.

    Not raised during scoring: ``TransactionContext.validation_issues()`` returns
    one instance per problem and the engine degrades the score accordingly.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class LookupTimeoutError(FraudEngineError):
    """A collaborator lookup exceeded its time budget."""

    def __init__(self, lookup: str, timeout_seconds: float) -> None:
        super().__init__(f"{lookup} timed out after {timeout_seconds:.3f}s")
        self.lookup = lookup
        self.timeout_seconds = timeout_seconds


class VelocityCheckError(FraudEngineError):
    """Velocity was queried without any identifying key."""


class ModelUpdateError(FraudEngineError):
    """A training batch was rejected. Prior weights are left unchanged."""
