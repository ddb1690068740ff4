class LexiCliError(Exception):
    """Base class for errors raised inside lexicli."""


class InputValidationError(LexiCliError):
    """A command token (range, direction, name) was not acceptable."""


class BackendUnavailable(LexiCliError):
    """No persistence backend is configured."""


class StorageOperationFailed(LexiCliError):
    """A get/put/delete against the persistence backend failed."""


class SourceLoadFailed(LexiCliError):
    """The bootstrap vocabulary could not be read from a source."""


class ImportInvalid(LexiCliError):
    """An imported vocabulary document is malformed."""
