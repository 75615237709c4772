import logging

import pytest

from storage_wipe.logsink import LOGGER_NAME, PROGRESS_LOGGER_NAME
from storage_wipe.models import Bus, DeviceDescriptor, WipeOptions


GIB = 1024 * 1024 * 1024


@pytest.fixture(autouse=True)
def detach_log_handlers():
    yield
    for name in (LOGGER_NAME, PROGRESS_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


class RecordingCommands:
    """CommandExecutor double: records commands, fails the ones listed."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def run(self, command, dry_run):
        self.calls.append((command, dry_run))
        if dry_run:
            return True
        return not any(pattern in command for pattern in self.failing)


@pytest.fixture
def make_device():
    def factory(path="/dev/sda", bus=Bus.SATA, size_bytes=10 * GIB, is_ssd=False, model="FAKE-DISK"):
        return DeviceDescriptor(
            name=path.rsplit("/", 1)[-1],
            path=path,
            bus=bus,
            size_bytes=size_bytes,
            model=model,
            is_ssd=is_ssd,
        )
    return factory


@pytest.fixture
def make_options():
    def factory(**overrides):
        values = {"passes": 0, "secure_erase": False, "auto_secure_erase": True, "random_data_write": False}
        values.update(overrides)
        return WipeOptions(**values)
    return factory


@pytest.fixture
def recording_commands():
    return RecordingCommands
