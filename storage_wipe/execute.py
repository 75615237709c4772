"""Execute phase - run (or preview) wipe plans device by device."""

import logging
import subprocess
from enum import Enum, IntEnum
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import CoverageWarning, StepExecutionFailure
from .logsink import echo
from .models import DeviceDescriptor, WipeOptions
from .plan import WipePlanBuilder


logger = logging.getLogger(__name__)


class ExitStatus(IntEnum):
    OK = 0
    ERROR = 1


class DeviceState(str, Enum):
    DISCOVERED = "discovered"
    SKIPPED = "skipped"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"


class DeviceOutcome(BaseModel):
    """What happened to one device during a run."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: str
    state: DeviceState = DeviceState.DISCOVERED
    steps_run: int = 0
    coverage_achieved: bool = False
    failures: List[StepExecutionFailure] = Field(default_factory=list)
    coverage_warning: Optional[CoverageWarning] = None


class WipeRunResult(BaseModel):
    """Aggregate of a whole run."""
    outcomes: List[DeviceOutcome] = Field(default_factory=list)

    @property
    def processed(self) -> List[DeviceOutcome]:
        return [o for o in self.outcomes if o.state == DeviceState.COMPLETED]

    @property
    def status(self) -> ExitStatus:
        if not self.processed:
            return ExitStatus.ERROR
        if any(o.failures for o in self.outcomes):
            return ExitStatus.ERROR
        return ExitStatus.OK


class CommandExecutor:
    """Runs one shell command, or only prints it in dry-run mode."""

    def __init__(self, timeout: Optional[int] = None, out: Callable[[str], None] = echo):
        self.timeout = timeout
        self.out = out

    def run(self, command: str, dry_run: bool) -> bool:
        """Return True when the command succeeded (always, in dry-run)."""
        if dry_run:
            self.out(f"    [dry-run] {command}")
            return True

        self.out(f"    [exec] {command}")
        try:
            result = subprocess.run(command, shell=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.error(f"Error: command timed out after {self.timeout}s: {command}")
            return False
        except OSError as e:
            logger.error(f"Error: could not start command ({e}): {command}")
            return False

        return result.returncode == 0


def confirm_on_console(path: str) -> bool:
    """Ask the operator on stdin; only "yes" (any case) confirms."""
    try:
        answer = input(f"Wipe ALL DATA on {path}? Type 'yes' to confirm: ")
    except EOFError:
        return False
    return answer.strip().lower() == "yes"


def always_confirm(path: str) -> bool:
    return True


class WipeExecutor:
    """Executes wipe plans for a batch of devices.

    Failures are accumulated, never fail-fast: every step of every confirmed
    device runs so the operator sees the full state of the batch.
    """

    def __init__(self, commands: CommandExecutor, planner: Optional[WipePlanBuilder] = None,
                 confirm: Callable[[str], bool] = confirm_on_console,
                 log: Optional[logging.Logger] = None):
        self.commands = commands
        self.planner = planner or WipePlanBuilder()
        self.confirm = confirm
        self.log = log or logger

    def run(self, devices: List[DeviceDescriptor], options: WipeOptions) -> WipeRunResult:
        result = WipeRunResult()

        for device in devices:
            result.outcomes.append(self._run_device(device, options))

        if not result.processed:
            self.log.info("Info: no devices were selected for wiping.")

        return result

    def _run_device(self, device: DeviceDescriptor, options: WipeOptions) -> DeviceOutcome:
        outcome = DeviceOutcome(path=device.path)
        echo(f"=== Device {device.path} ({device.size_gib}GiB; {device.model}) ===")

        if options.confirm_all:
            echo("--confirm-all supplied; wiping without interactive prompt.")
        elif not self.confirm(device.path):
            outcome.state = DeviceState.SKIPPED
            echo(f"Skipping {device.path} by user choice.")
            echo()
            return outcome

        outcome.state = DeviceState.CONFIRMED

        if device.is_ssd and (options.passes > 1 or options.random_data_write):
            self.log.warning(
                f"Warning: device {device.path} appears to be SSD (non-rotational); multiple overwrite passes "
                "or random writes will increase wear. Prefer --secure-erase where supported."
            )

        if self.planner.secure_erase_trigger(device, options) == "auto":
            self.log.info(
                f"Info: {device.path} is a {device.bus.value} SSD; adding firmware secure erase automatically "
                "(disable with --no-auto-secure-erase)."
            )

        for step in self.planner.build(device, options):
            echo(f"  - {step.description}")
            outcome.steps_run += 1
            if not self.commands.run(step.command, options.dry_run):
                failure = StepExecutionFailure(device.path, step.command, step.best_effort, step.failure_hint)
                outcome.failures.append(failure)
                self.log.error(f"Error: {failure}")
            elif step.covers_whole_device:
                outcome.coverage_achieved = True

        if not outcome.coverage_achieved:
            outcome.coverage_warning = CoverageWarning(device.path)
            self.log.warning(f"WARNING: {outcome.coverage_warning}")

        outcome.state = DeviceState.COMPLETED
        echo()
        return outcome
