class PipelineError(Exception):
    """
    Base class for errors that abort a France monthly run. `result` holds
    the LoadResult of the batches committed before the failure, when known.
    """

    def __init__(self, message: str, result=None):
        self.result = result
        super().__init__(message)


class UnresolvedForeignKeyError(PipelineError):
    def __init__(self, missing: list[str], result=None):
        self.missing = missing
        super().__init__(f"Unresolved foreign keys: {', '.join(missing)}", result)


class PersistenceError(PipelineError):
    """A storage failure during a batch."""


class LoaderValidationError(PipelineError):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Loader validation failed: " + "; ".join(errors))


class LoaderStateError(PipelineError):
    pass


class RateCalculationError(ValueError):
    pass
