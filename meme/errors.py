"""
Error taxonomy for the meme module.

Every failure that crosses a collaborator boundary is converted into one of
these so callers can leave session state intact and report a notice.
"""


class MemeError(Exception):
    """Base class for meme processing errors."""


class SourceUnavailable(MemeError):
    """Image could not be read, fetched or decoded."""


class SuggestionUnavailable(MemeError):
    """Caption suggestion service failed or returned nothing usable."""


class EditUnavailable(MemeError):
    """Image edit service failed or returned no image."""


class ExportFailed(MemeError):
    """Rendered surface could not be serialized."""


class ImageRequired(MemeError):
    """Action needs an image but none is loaded."""


class ActionInProgress(MemeError):
    """An action was started while a previous run of it is still in flight."""

    def __init__(self, action: str):
        super().__init__(f"'{action}' is already in progress")
        self.action = action
