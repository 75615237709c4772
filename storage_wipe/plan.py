"""Plan phase - build the ordered wipe steps for one device."""

import math
import shlex
from typing import List, Optional

from .config import DEFAULT_SECURITY_PASSWORD
from .models import Bus, DeviceDescriptor, SECURE_ERASE_BUSES, StepKind, WipeOptions, WipeStep


MIB = 1024 * 1024
HEADER_ZERO_MIB = 20

# Arguments: device path, duration in seconds, worker count.
RANDOM_WRITE_SCRIPT = r'''dev="$1"
duration="$2"
workers="$3"
if [ -z "$dev" ] || [ -z "$duration" ]; then
  echo "random-write: missing arguments" >&2
  exit 1
fi

if [ -z "$workers" ]; then
  workers=2
fi

size_bytes=$(blockdev --getsize64 "$dev" 2>/dev/null)
if [ -z "$size_bytes" ] || [ "$size_bytes" -le 0 ] 2>/dev/null; then
  echo "random-write: could not determine size for $dev" >&2
  exit 1
fi

size_mib=$((size_bytes / 1024 / 1024))
if [ "$size_mib" -le 0 ]; then
  size_mib=1
fi

worker_loop() {
  local end count max_offset offset
  end=$((SECONDS + duration))
  while [ "$SECONDS" -lt "$end" ]; do
    count=$(( (RANDOM % 64) + 1 ))
    if [ "$count" -gt "$size_mib" ]; then
      count="$size_mib"
    fi
    max_offset=$((size_mib - count))
    if [ "$max_offset" -le 0 ]; then
      offset=0
    else
      offset=$(( ((RANDOM << 15) | RANDOM) % max_offset ))
    fi
    dd if=/dev/zero of="$dev" bs=1M count="$count" seek="$offset" conv=notrunc oflag=direct status=none
  done
}

i=1
while [ "$i" -le "$workers" ]; do
  worker_loop &
  i=$((i + 1))
done
wait
'''


def full_pass_block_count(size_bytes: int) -> int:
    """Number of 1 MiB blocks covering the device, never less than one."""
    if size_bytes <= 0:
        return 1
    return max(int(math.ceil(size_bytes / MIB)), 1)


class WipePlanBuilder:
    """Creates wipe plans for block devices.

    Plans always follow the same order: metadata destruction (signatures,
    discard, header zeroing), full overwrite passes, firmware secure erase,
    random-write scrubbing. Nothing here touches a device.
    """

    def __init__(self, security_password: str = DEFAULT_SECURITY_PASSWORD):
        self.security_password = security_password

    def build(self, device: DeviceDescriptor, options: WipeOptions) -> List[WipeStep]:
        """Return the ordered steps for ``device``."""
        plan = self._baseline_steps(device)
        plan.extend(self._overwrite_passes(device, options.passes))

        if self.secure_erase_trigger(device, options) is not None:
            plan.extend(self._secure_erase_steps(device))

        if options.random_data_write:
            plan.append(self._random_write_step(
                device,
                options.random_duration_seconds,
                options.random_workers_per_device
            ))

        return plan

    def secure_erase_trigger(self, device: DeviceDescriptor, options: WipeOptions) -> Optional[str]:
        """Why secure erase is in the plan: "explicit", "auto", or None when it is not."""
        if options.secure_erase:
            return "explicit"
        if options.auto_secure_erase and device.is_ssd and device.bus in SECURE_ERASE_BUSES:
            return "auto"
        return None

    def _baseline_steps(self, device: DeviceDescriptor) -> List[WipeStep]:
        path = device.path
        target = shlex.quote(path)
        return [
            WipeStep(
                description=f"wipefs -a on {path}",
                command=f"wipefs -a {target}",
                kind=StepKind.SIGNATURE_WIPE,
            ),
            WipeStep(
                description=f"blkdiscard on {path} (if supported)",
                command=f"blkdiscard {target}",
                kind=StepKind.DISCARD,
                best_effort=True,
            ),
            WipeStep(
                description=f"dd zero header ({HEADER_ZERO_MIB}MiB) on {path}",
                command=f"dd if=/dev/zero of={target} bs=1M count={HEADER_ZERO_MIB} conv=fsync,notrunc status=none",
                kind=StepKind.HEADER_ZERO,
            ),
        ]

    def _overwrite_passes(self, device: DeviceDescriptor, passes: int) -> List[WipeStep]:
        target = shlex.quote(device.path)
        count = full_pass_block_count(device.size_bytes)
        suffix = ""
        hint = None
        if device.size_bytes % MIB:
            suffix = " (size not MiB-aligned; dd ends with ENOSPC)"
            hint = ("size is not a whole number of MiB, so dd stops with ENOSPC after writing the "
                    "last partial block; a failure here may still mean the device was fully overwritten")
        return [
            WipeStep(
                description=f"full-device zero overwrite pass {i} on {device.path}{suffix}",
                command=f"dd if=/dev/zero of={target} bs=1M count={count} conv=fsync,notrunc status=none",
                kind=StepKind.OVERWRITE_PASS,
                covers_whole_device=True,
                failure_hint=hint,
            )
            for i in range(1, passes + 1)
        ]

    def _secure_erase_steps(self, device: DeviceDescriptor) -> List[WipeStep]:
        path = device.path
        target = shlex.quote(path)

        if device.bus == Bus.NVME:
            return [
                WipeStep(
                    description=f"nvme identify {path}",
                    command=f"nvme id-ctrl {target}",
                    kind=StepKind.SECURE_ERASE_IDENTIFY,
                ),
                WipeStep(
                    description=f"nvme format secure erase on {path}",
                    command=f"nvme format {target} --ses=1 --force",
                    kind=StepKind.SECURE_ERASE,
                    covers_whole_device=True,
                ),
            ]

        password = shlex.quote(self.security_password)
        return [
            WipeStep(
                description=f"hdparm identify {path}",
                command=f"hdparm -I {target}",
                kind=StepKind.SECURE_ERASE_IDENTIFY,
            ),
            WipeStep(
                description=f"hdparm security-set-pass on {path}",
                command=f"hdparm --user-master u --security-set-pass {password} {target}",
                kind=StepKind.SECURE_ERASE_SET_PASSWORD,
            ),
            WipeStep(
                description=f"hdparm security-erase on {path}",
                command=f"hdparm --user-master u --security-erase {password} {target}",
                kind=StepKind.SECURE_ERASE,
                covers_whole_device=True,
            ),
        ]

    def _random_write_step(self, device: DeviceDescriptor, duration: int, workers: int) -> WipeStep:
        return WipeStep(
            description=f"random data write with {workers} workers for {duration}s on {device.path}",
            command=(
                f"bash -c {shlex.quote(RANDOM_WRITE_SCRIPT)} -- "
                f"{shlex.quote(device.path)} {duration} {workers}"
            ),
            kind=StepKind.RANDOM_WRITE,
        )
