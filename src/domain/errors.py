class LegalLensError(Exception):
    """
    Root of the errors raised synchronously by the analysis core.

    Analyzer failures are NOT raised through this hierarchy: they are
    recorded on the Contract once the submission call has returned.
    """


class InvalidSubmission(LegalLensError, ValueError):
    """Empty or unsupported document. No Contract is created."""


class ContractNotFound(LegalLensError, KeyError):
    """Unknown or discarded contract id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class InvalidTransition(LegalLensError, RuntimeError):
    """A contract state change outside the allowed lifecycle graph."""


class EmptyQuery(LegalLensError, ValueError):
    """Whitespace-only question. No turn is recorded."""


class SessionBusy(LegalLensError, RuntimeError):
    """A question is already in flight and the session rejects overlap."""


class SessionNotFound(LegalLensError, KeyError):
    def __str__(self) -> str:
        return Exception.__str__(self)
