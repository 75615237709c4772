"""Command-line option parsing for the wipe tool."""

import argparse
from typing import List, Optional, Sequence

from pydantic import ValidationError

from .errors import ConfigurationError
from .models import WipeOptions


DESCRIPTION = """\
Destroy data on block devices by running a sequence of wipe operations:
  - wipefs -a
  - blkdiscard
  - dd header zeroing (20MiB)
  - optional multi-pass full-device overwrites
  - optional firmware secure erase (hdparm for ATA/SAS, nvme format for NVMe)
  - optional random write loops

By default every SATA, SAS, NVMe and USB disk reported by lsblk is selected
and the operator is asked to confirm each one. The disk containing the root
filesystem ("/") is skipped unless --include-system-device is given.
"""

EPILOG = """\
WARNING:
  This tool is intentionally destructive. Without --dry-run, any confirmed
  device will have its contents irreversibly destroyed. Automated tests must
  only ever use --dry-run.
"""


class _OptionParser(argparse.ArgumentParser):
    """ArgumentParser that reports bad input as ConfigurationError instead of exiting."""

    def error(self, message):
        raise ConfigurationError(message)


def _positive_int(flag: str):
    def parse(value: str) -> int:
        if not value.isdigit() or int(value) < 1:
            raise argparse.ArgumentTypeError(f"invalid {flag} value '{value}', must be integer >= 1")
        return int(value)
    return parse


def _device_selector(value: str) -> str:
    if value.strip() == "":
        raise argparse.ArgumentTypeError("empty value for --device")
    return value.strip()


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = _OptionParser(
        prog=prog,
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--dry-run", action="store_true",
                        help="print planned commands only; do NOT execute them")
    parser.add_argument("--confirm-all", action="store_true",
                        help="do not prompt per device; wipe everything selected")
    parser.add_argument("--device", dest="devices", action="append", default=[], metavar="PATH",
                        type=_device_selector,
                        help="restrict wiping to this device path or name (repeatable)")
    parser.add_argument("--include-system-device", action="store_true",
                        help="allow wiping the disk that backs '/'")
    parser.add_argument("--passes", type=_positive_int("--passes"), default=0, metavar="N",
                        help="number of full-device zero overwrite passes (N >= 1)")
    parser.add_argument("--secure-erase", action="store_true",
                        help="request firmware secure erase on every selected device")
    parser.add_argument("--no-auto-secure-erase", dest="auto_secure_erase", action="store_false",
                        help="do not add secure erase automatically for SATA/SAS/NVMe SSDs")
    parser.add_argument("--stop-md-arrays", action="store_true",
                        help="unmount and stop MD RAID arrays that include selected disks before wiping")
    parser.add_argument("--random-data-write", action="store_true",
                        help="after the other steps, run time-limited random-position zero writes")
    parser.add_argument("--random-duration-seconds", type=_positive_int("--random-duration-seconds"),
                        default=300, metavar="N",
                        help="duration for random write workers (default: 300)")
    parser.add_argument("--random-workers", dest="random_workers_per_device",
                        type=_positive_int("--random-workers"), default=2, metavar="N",
                        help="number of random write workers per device (default: 2)")
    return parser


def parse_options(argv: Sequence[str], presets: Sequence[str] = (),
                  prog: Optional[str] = None) -> WipeOptions:
    """Parse arguments into WipeOptions.

    ``presets`` are placed before ``argv`` so explicit arguments win.
    Raises ConfigurationError on invalid input; ``--help`` exits via SystemExit.
    """
    args: List[str] = list(presets) + list(argv)
    namespace = build_parser(prog).parse_args(args)

    try:
        return WipeOptions(**vars(namespace))
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
