"""Custom exceptions for the analysis pipeline."""


class UnclassifiableError(Exception):
    """Node involves a generated type but no usage category fits it."""


class FileLoadError(Exception):
    """A source file could not be loaded or type-checked by the front end."""


class SnapshotLoadError(Exception):
    """A whole rewrite-level snapshot could not be loaded."""
