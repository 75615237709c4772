"""Stop software RAID arrays that span disks about to be wiped."""

import logging
import shlex
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .execute import CommandExecutor
from .models import RaidArrayMatch, TopologyNode


logger = logging.getLogger(__name__)

SWAP_MOUNTPOINT = "[SWAP]"


def collect_disks_and_mountpoints(node: TopologyNode) -> Tuple[List[str], List[str]]:
    """Disk names and mountpoints found in this subtree, the node itself included."""
    disks: List[str] = []
    mountpoints: List[str] = []

    def walk(current: TopologyNode) -> None:
        if current.is_disk and current.name and current.name not in disks:
            disks.append(current.name)
        if current.mountpoint and current.mountpoint not in mountpoints:
            mountpoints.append(current.mountpoint)
        for child in current.children:
            walk(child)

    walk(node)
    return disks, mountpoints


def _swap_devices(node: TopologyNode) -> List[str]:
    found = [node.device_path] if node.mountpoint == SWAP_MOUNTPOINT else []
    for child in node.children:
        found.extend(_swap_devices(child))
    return found


def collect_md_arrays(node: TopologyNode, targets: Set[str],
                      inherited: Tuple[str, ...] = ()) -> List[RaidArrayMatch]:
    """Every RAID node in the subtree whose member disks intersect ``targets``.

    Recursion continues below a match, so nested arrays are reported too.
    ``inherited`` holds mountpoints of ancestors; in an inverse (lsblk -s)
    tree those are filesystems stacked on the array.
    """
    matches: List[RaidArrayMatch] = []

    if node.is_raid:
        disks, mountpoints = collect_disks_and_mountpoints(node)
        if targets.intersection(disks):
            own = [m for m in inherited if m not in mountpoints] + mountpoints
            matches.append(RaidArrayMatch(
                path=node.device_path,
                member_disks=disks,
                mountpoints=[m for m in own if m != SWAP_MOUNTPOINT],
                swap_devices=_swap_devices(node),
            ))

    if node.mountpoint and node.mountpoint != SWAP_MOUNTPOINT:
        inherited = inherited + (node.mountpoint,)
    for child in node.children:
        matches.extend(collect_md_arrays(child, targets, inherited))

    return matches


def merge_matches(matches: Iterable[RaidArrayMatch]) -> List[RaidArrayMatch]:
    """Fold duplicate entries for the same array (lsblk repeats shared subtrees)."""
    merged: Dict[str, RaidArrayMatch] = {}
    for match in matches:
        existing = merged.get(match.path)
        if existing is None:
            merged[match.path] = match.model_copy(deep=True)
            continue
        for field in ("member_disks", "mountpoints", "swap_devices"):
            values = getattr(existing, field)
            values.extend(v for v in getattr(match, field) if v not in values)
    return list(merged.values())


def _unmount_order(mountpoints: List[str]) -> List[str]:
    # deepest first so /data/sub is released before /data
    return sorted(mountpoints, key=lambda m: (m.rstrip("/").count("/"), m), reverse=True)


class RaidGuard:
    """Unmounts and stops MD arrays containing target disks."""

    def __init__(self, commands: CommandExecutor, log: Optional[logging.Logger] = None):
        self.commands = commands
        self.log = log or logger
        self.failed_commands: List[str] = []

    def find_arrays(self, target_disk_names: Iterable[str], tree: List[TopologyNode]) -> List[RaidArrayMatch]:
        targets = set(target_disk_names)
        matches: List[RaidArrayMatch] = []
        for node in tree:
            matches.extend(collect_md_arrays(node, targets))
        return merge_matches(matches)

    def stop_arrays_for(self, target_disk_names: Iterable[str], tree: List[TopologyNode],
                        dry_run: bool) -> bool:
        """Unmount and stop every matching array; True only if every command succeeded.

        Runs to completion even after a failure so every partially stopped
        array is reported in one pass.
        """
        self.failed_commands = []
        arrays = self.find_arrays(target_disk_names, tree)
        if not arrays:
            self.log.info("Info: no MD arrays include the selected disks.")
            return True

        released: Set[str] = set()
        for array in arrays:
            self.log.info(
                f"Info: stopping MD array {array.path} (members: {', '.join(array.member_disks)})"
            )
            # nested arrays share the mountpoints stacked on the outer one
            for mountpoint in _unmount_order(array.mountpoints):
                if mountpoint in released:
                    continue
                released.add(mountpoint)
                self._run(f"umount {shlex.quote(mountpoint)}", dry_run,
                          f"failed to unmount {mountpoint} (array {array.path})")
            for swap in array.swap_devices:
                if swap in released:
                    continue
                released.add(swap)
                self._run(f"swapoff {shlex.quote(swap)}", dry_run,
                          f"failed to disable swap on {swap} (array {array.path})")
            self._run(f"mdadm --stop {shlex.quote(array.path)}", dry_run,
                      f"failed to stop MD array {array.path}")

        return not self.failed_commands

    def _run(self, command: str, dry_run: bool, error: str) -> None:
        if not self.commands.run(command, dry_run):
            self.failed_commands.append(command)
            self.log.error(f"Error: {error}")
