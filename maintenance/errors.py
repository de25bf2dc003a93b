"""Error taxonomy for maintenance runs."""


class ConfigurationError(Exception):
    """Required scope, credentials, or store settings are missing.

    Raised before enumeration begins.
    """


class ScopeUnavailable(Exception):
    """The scope cannot be enumerated (missing namespace/table or the listing call failed).

    Fatal: the run stops before any mutation and no partial results are returned.
    """

    def __init__(self, scope: str, reason: str) -> None:
        super().__init__(f"Scope '{scope}' is unavailable: {reason}")
        self.scope = scope
        self.reason = reason


class BatchMutationFailure(Exception):
    """A bulk delete/upsert call failed for a whole batch.

    Never aborts a run; the mutator records one error per id in the batch.
    """

    def __init__(self, record_ids: list[str], message: str) -> None:
        super().__init__(message)
        self.record_ids = list(record_ids)
        self.message = message
