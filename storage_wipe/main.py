"""Main entry point for the storage wipe tool."""

import sys
from typing import List, Optional, Sequence

from .cli import parse_options
from .collect import DeviceCatalog, collect_devices
from .config import Settings, load_settings
from .errors import ConfigurationError, DiscoveryError, RaidStopFailure
from .execute import CommandExecutor, ExitStatus, WipeExecutor, always_confirm, confirm_on_console
from .logsink import echo, setup_logging
from .models import DeviceDescriptor, WipeOptions
from .plan import WipePlanBuilder
from .raid import RaidGuard
from .topology import TopologyGraph
from .utils import format_bytes


def _stop_md_arrays(devices: List[DeviceDescriptor], topology: TopologyGraph,
                    commands: CommandExecutor, dry_run: bool) -> None:
    """Raise RaidStopFailure unless every array spanning ``devices`` was stopped."""
    guard = RaidGuard(commands)
    tree = topology.snapshot(inverse=True)
    if not guard.stop_arrays_for([d.name for d in devices], tree, dry_run):
        raise RaidStopFailure(guard.failed_commands)


def run_wipe(options: WipeOptions, settings: Settings) -> ExitStatus:
    """Discover, optionally stop RAID, then wipe. Returns the process exit status."""
    logger = setup_logging(settings.log_file)

    if options.dry_run:
        echo("DRY-RUN: no destructive commands will be executed.")
        echo("DRY-RUN: printing planned wipe commands only.")
        echo()

    topology = TopologyGraph(settings)
    catalog = DeviceCatalog(settings)

    try:
        devices = collect_devices(options, catalog, topology)
    except DiscoveryError as e:
        logger.error(f"Error: failed to obtain block device information: {e}")
        return ExitStatus.ERROR

    if not devices:
        logger.error("Error: no block devices found to wipe.")
        return ExitStatus.ERROR

    echo(f"📱 Devices selected: {len(devices)}")
    for device in devices:
        kind = "SSD" if device.is_ssd else "HDD"
        echo(f"   - {device.path} [{device.bus.value} {kind}] {format_bytes(device.size_bytes)} {device.model}")
    echo()

    commands = CommandExecutor(timeout=settings.command_timeout)

    if options.stop_md_arrays:
        try:
            _stop_md_arrays(devices, topology, commands, options.dry_run)
        except (DiscoveryError, RaidStopFailure) as e:
            logger.error(f"Error: {e}; aborting before any wipe step.")
            return ExitStatus.ERROR

    executor = WipeExecutor(
        commands,
        planner=WipePlanBuilder(settings.security_password),
        confirm=always_confirm if options.confirm_all else confirm_on_console,
        log=logger,
    )
    result = executor.run(devices, options)

    if result.status == ExitStatus.OK:
        echo(f"✅ Wipe run completed for {len(result.processed)} device(s).")
    else:
        failed = sum(len(o.failures) for o in result.outcomes)
        logger.error(f"❌ Wipe run finished with errors ({failed} failed command(s)).")

    return result.status


def run(argv: Sequence[str], presets: Sequence[str] = (), prog: Optional[str] = None) -> int:
    """Parse arguments and run; never raises for operator errors."""
    settings = load_settings()

    try:
        options = parse_options(argv, presets, prog)
    except ConfigurationError as e:
        setup_logging(settings.log_file).error(f"Error: {e}")
        return int(ExitStatus.ERROR)

    try:
        return int(run_wipe(options, settings))
    except KeyboardInterrupt:
        print("\n❌ Wipe interrupted by user.", file=sys.stderr)
        return int(ExitStatus.ERROR)


def main():
    """storage-wipe"""
    sys.exit(run(sys.argv[1:]))


def main_dod3():
    """storage-wipe-dod3: three full zero passes in addition to the baseline steps."""
    sys.exit(run(sys.argv[1:], presets=["--passes=3"], prog="storage-wipe-dod3"))


def main_dod7():
    """storage-wipe-dod7: seven full zero passes in addition to the baseline steps."""
    sys.exit(run(sys.argv[1:], presets=["--passes=7"], prog="storage-wipe-dod7"))


def main_secure_erase():
    """storage-wipe-secure-erase: always request firmware secure erase."""
    sys.exit(run(sys.argv[1:], presets=["--secure-erase"], prog="storage-wipe-secure-erase"))


def main_random_scrub():
    """storage-wipe-random-scrub: add time-limited random-position writes."""
    sys.exit(run(sys.argv[1:], presets=["--random-data-write"], prog="storage-wipe-random-scrub"))


if __name__ == "__main__":
    main()
