"""Storage topology: the lsblk device tree and system-disk resolution."""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import Settings
from .errors import DiscoveryError
from .models import TopologyNode
from .utils import capture_output, first_line, parse_blockdevices


logger = logging.getLogger(__name__)

TOPOLOGY_COLUMNS = "NAME,TYPE,SIZE,MODEL,FSTYPE,MOUNTPOINT,PKNAME"


def normalize_node(raw: Dict[str, Any]) -> TopologyNode:
    """Build a TopologyNode (recursively) from one lsblk JSON entry."""
    name = str(raw.get("name") or "")
    children = raw.get("children") or []
    return TopologyNode(
        name=name,
        type=raw.get("type"),
        path=raw.get("path") or (f"/dev/{name}" if name else None),
        mountpoint=raw.get("mountpoint"),
        pkname=raw.get("pkname"),
        fstype=raw.get("fstype"),
        size_bytes=raw.get("size", raw.get("size_bytes")),
        model=raw.get("model"),
        children=[normalize_node(child) for child in children if isinstance(child, dict)],
    )


def find_root_disk(node: TopologyNode, ancestor_disk: Optional[str] = None) -> Optional[str]:
    """Return the disk name backing "/" within this subtree, or None.

    Root mounted on a disk resolves to that disk. Root mounted on a partition
    (or anything stacked on one) resolves to the nearest disk ancestor, and
    failing that to the node's parent-name link.
    """
    current_disk = node.name if node.is_disk else ancestor_disk

    if node.mountpoint == "/":
        if node.is_disk:
            return node.name
        if current_disk:
            return current_disk
        return node.pkname

    for child in node.children:
        found = find_root_disk(child, current_disk)
        if found:
            return found

    return None


def find_root_disks(nodes: List[TopologyNode]) -> List[str]:
    """Every top-level disk whose subtree holds "/" (several when root sits on RAID)."""
    disks: List[str] = []
    for node in nodes:
        found = find_root_disk(node)
        if found and found not in disks:
            disks.append(found)
    return disks


def find_root_holders(node: TopologyNode, trail: Tuple[TopologyNode, ...] = ()) -> List[str]:
    """Stacked devices (md, lvm, crypt...) between a disk and the "/" mount.

    Partitions and disks are left out; disks are covered by find_root_disk.
    """
    trail = trail + (node,)
    if node.mountpoint == "/":
        return [n.name for n in trail if n.name and not n.is_disk and n.type != "part"]

    holders: List[str] = []
    for child in node.children:
        for name in find_root_holders(child, trail):
            if name not in holders:
                holders.append(name)
    return holders


def invert_tree(nodes: List[TopologyNode]) -> List[TopologyNode]:
    """Turn a normal lsblk tree upside down, as ``lsblk -s`` prints it.

    A device shared by several parents (an md array on two partitions) shows
    up once per parent in the normal tree; in the result it is a single node
    whose children are all of those parents.
    """
    index: Dict[str, TopologyNode] = {}
    parents: Dict[str, List[str]] = {}

    def walk(node: TopologyNode, parent: Optional[str]) -> None:
        index.setdefault(node.name, node)
        holders = parents.setdefault(node.name, [])
        if parent and parent not in holders:
            holders.append(parent)
        for child in node.children:
            walk(child, node.name)

    for node in nodes:
        walk(node, None)

    def build(name: str) -> TopologyNode:
        return index[name].model_copy(update={"children": [build(p) for p in parents[name]]})

    return [build(name) for name, node in index.items() if not node.children]


def _strip_subvolume(source: str) -> str:
    # findmnt reports btrfs subvolumes as /dev/sda2[/@]
    if source.endswith("]") and "[" in source:
        return source[:source.index("[")]
    return source


class TopologyGraph:
    """Reads the block-device tree from lsblk (or a configured JSON snapshot)."""

    def __init__(self, settings: Optional[Settings] = None,
                 run: Callable[[List[str]], Optional[str]] = capture_output):
        self.settings = settings or Settings()
        self._run = run

    def snapshot(self, inverse: bool = False) -> List[TopologyNode]:
        """Return the top-level nodes of the device tree.

        With ``inverse`` the tree is upside down (lsblk -s): RAID arrays and
        filesystems are on top and their member disks are descendants. A
        configured JSON snapshot is always the normal tree; its inverse view
        is derived from it.
        """
        if self.settings.topology_json is not None:
            devices = parse_blockdevices(self.settings.topology_json, "storage topology")
            nodes = [normalize_node(dev) for dev in devices]
            return invert_tree(nodes) if inverse else nodes

        args = ["lsblk", "-J", "-b", "-o", TOPOLOGY_COLUMNS]
        if inverse:
            args.insert(1, "-s")
        devices = parse_blockdevices(self._run(args), "storage topology")
        return [normalize_node(dev) for dev in devices]

    def resolve_system_disks(self) -> List[str]:
        """Names of the devices backing "/"; empty when undeterminable.

        Besides the disks this includes stacked devices such as an md array
        holding "/", so selecting the array itself is caught too.
        """
        try:
            tree = self.snapshot()
        except DiscoveryError as e:
            logger.info(f"Info: storage topology unavailable ({e}); resolving root device via findmnt.")
            tree = []

        disks = find_root_disks(tree)
        if disks:
            for node in tree:
                disks.extend(h for h in find_root_holders(node) if h not in disks)
            return disks

        fallback = self._resolve_root_source_disk()
        if fallback:
            return [fallback]

        logger.info("Info: could not determine the system disk; no device is treated as the system disk.")
        return []

    def _resolve_root_source_disk(self) -> Optional[str]:
        """Map the source device of "/" to its parent disk via findmnt/df and lsblk."""
        source = first_line(self._run(["findmnt", "-n", "-o", "SOURCE", "/"]))
        if not source:
            df_output = self._run(["df", "--output=source", "/"])
            lines = df_output.splitlines() if df_output else []
            source = lines[-1].strip() if len(lines) > 1 else None
        if not source:
            return None

        source = _strip_subvolume(source)

        pkname = first_line(self._run(["lsblk", "-n", "-o", "PKNAME", source]))
        if pkname:
            return pkname

        return first_line(self._run(["lsblk", "-n", "-o", "NAME", source]))
