class FleetpinError(Exception):
    """Base error for Fleetpin."""


class RecoverableError(FleetpinError):
    """Indicates the operation can be retried safely."""


class PermanentError(FleetpinError):
    """Indicates the operation should not be retried."""


class TransientRemoteError(RecoverableError):
    """Remote store or network hiccup; the caller retries on its next tick."""


class SideEffectFailure(PermanentError):
    """An app restart or reboot primitive reported failure."""


class PermissionMissing(FleetpinError):
    """A host privilege (for example device admin) is not granted."""


class ValidationError(FleetpinError):
    """Input validation failure."""
