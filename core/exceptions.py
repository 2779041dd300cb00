# WORKFLOW: Domain exceptions raised by the reimport pipeline.
# Used by: Unit of work, pipeline orchestration, CLI
# Exceptions:
# 1. ReimportError - Base class for pipeline failures
# 2. SourceFileNotFound - Source export is missing
# 3. UnitOfWorkError - Transaction used after commit/rollback or finalized twice
# 4. TransactionRolledBack - A live run failed inside its unit of work (cause chained)
#
# Fatal errors propagate to the CLI, which rolls back and exits non-zero.


class ReimportError(Exception):
    """Base class for reimport pipeline failures."""


class SourceFileNotFound(ReimportError):
    """Raised when the source export file does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Source file not found: {path}")
        self.path = path


class UnitOfWorkError(ReimportError):
    """Raised when a unit of work is finalized twice or used after finalization."""


class TransactionRolledBack(ReimportError):
    """Raised when a live run fails after its transaction started; the cause is chained."""

    def __init__(self, cause: BaseException):
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.cause = cause
