"""Error taxonomy for the bulk import pipeline.

Row-level validation problems are never raised: they are recorded on the
ValidatedRow. Everything here is raised, and each route or task decides how
to surface it.
"""


class BulkImportError(Exception):
    """Base class for import pipeline failures."""


class MissingColumnsError(BulkImportError):
    """Required header columns are absent; no row can be trusted."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing columns: {', '.join(self.missing)}")


class UnsupportedFileError(BulkImportError):
    """The uploaded file is neither CSV nor XLSX, or cannot be decoded."""


class UnknownEntityError(BulkImportError):
    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"Unknown import entity '{entity}'")


class GroupPersistenceError(BulkImportError):
    """A remote write for one group's parent or children failed."""

    def __init__(self, key: str, message: str):
        self.key = key
        self.message = message
        super().__init__(f"{key}: {message}")


class ImportTransportError(BulkImportError):
    """Database unreachable before any group was attempted; aborts the run."""


class InvalidTransitionError(BulkImportError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move import run from '{current}' to '{target}'")
