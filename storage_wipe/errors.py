"""Exception types raised and recorded by the wipe tool."""

from typing import List, Optional


class StorageWipeError(Exception):
    """Base class for wipe tool errors."""


class ConfigurationError(StorageWipeError):
    """Invalid operator options; raised before any device is touched."""


class DiscoveryError(StorageWipeError):
    """Device catalog or topology data could not be obtained or parsed."""


class RaidStopFailure(StorageWipeError):
    """Unmounting or stopping a RAID array failed while stopping was requested."""

    def __init__(self, failed_commands: Optional[List[str]] = None):
        self.failed_commands = list(failed_commands or [])
        detail = "; ".join(self.failed_commands) if self.failed_commands else "see log"
        super().__init__(f"failed to stop MD arrays spanning target disks ({detail})")


class StepExecutionFailure(StorageWipeError):
    """A single wipe command returned failure.

    Recorded on the device outcome and logged; never raised out of the executor.
    """

    def __init__(self, device_path: str, command: str, best_effort: bool = False,
                 hint: Optional[str] = None):
        self.device_path = device_path
        self.command = command
        self.best_effort = best_effort
        self.hint = hint
        message = f"command failed for {device_path}: {command}"
        if best_effort:
            message += " (best-effort step; the device may not support it)"
        if hint:
            message += f" ({hint})"
        super().__init__(message)


class CoverageWarning(UserWarning):
    """No step guaranteeing full-device coverage succeeded on a device."""

    def __init__(self, device_path: str):
        self.device_path = device_path
        super().__init__(
            f"device {device_path} was not fully overwritten by any single step; residual data may remain. "
            "Consider additional full-device passes or secure erase."
        )
