"""Error taxonomy shared by the control panel and the preset store."""


class VizsyncError(Exception):
    """Base class for every error raised by the synchronization layer."""


class ValidationError(VizsyncError, ValueError):
    """User input is empty or invalid (e.g. a blank preset name)."""


class ProtectedEntryError(VizsyncError):
    """Attempt to mutate an entry that only exists in the built-in collection."""


class NotFoundError(VizsyncError, KeyError):
    """Operation on a name that does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument, keep the plain message for dialogs
        return str(self.args[0]) if self.args else ""


class PresetImportError(VizsyncError):
    """External preset data could not be parsed."""


class ChannelError(VizsyncError):
    """Malformed inbound channel message. Never fatal, the message is dropped."""
