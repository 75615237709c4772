"""Collect phase - discover block devices eligible for wiping."""

import logging
from typing import Any, Callable, Dict, List, Optional

from .config import Settings
from .models import Bus, DeviceDescriptor, WipeOptions
from .topology import TopologyGraph
from .utils import capture_output, parse_blockdevices


logger = logging.getLogger(__name__)

CATALOG_COLUMNS = "NAME,TYPE,SIZE,TRAN,MODEL,ROTA"

# Buses wiped without an explicit --device selector, in output order.
IMPLICIT_BUSES = (Bus.SATA, Bus.SAS, Bus.NVME, Bus.USB)
ALL_BUSES = IMPLICIT_BUSES + (Bus.MD, Bus.OTHER)


def determine_bus_type(device: Dict[str, Any]) -> Bus:
    """Classify an lsblk entry by its transport (and name for NVMe and MD)."""
    tran = str(device.get("tran") or "").strip().lower()
    name = str(device.get("name") or "")
    dev_type = str(device.get("type") or "").strip().lower()

    if dev_type.startswith("raid") or name.startswith("md"):
        return Bus.MD
    if tran == "usb":
        return Bus.USB
    if tran == "sata":
        return Bus.SATA
    if tran in ("sas", "scsi"):
        return Bus.SAS
    if tran == "nvme" or name.startswith("nvme"):
        return Bus.NVME
    return Bus.OTHER


def _is_wipeable_type(device: Dict[str, Any]) -> bool:
    dev_type = str(device.get("type") or "").strip().lower()
    return dev_type == "disk" or dev_type.startswith("raid")


def _parse_size(raw: Any) -> int:
    try:
        return max(int(raw), 0)
    except (TypeError, ValueError):
        return 0


def _parse_rotational(raw: Any) -> Optional[bool]:
    # lsblk prints ROTA as 1/0, "1"/"0" or true/false depending on version
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return bool(raw)
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value in ("1", "true"):
            return True
        if value in ("0", "false"):
            return False
    return None


def group_devices_by_bus(blockdevices: List[Dict[str, Any]]) -> Dict[Bus, List[Dict[str, Any]]]:
    """Group disk and MD entries by bus, normalised to name/path/bus/size/model."""
    groups: Dict[Bus, List[Dict[str, Any]]] = {bus: [] for bus in ALL_BUSES}

    for device in blockdevices:
        if not _is_wipeable_type(device):
            continue

        name = str(device.get("name") or "").strip()
        if not name:
            continue

        bus = determine_bus_type(device)
        size_bytes = _parse_size(device.get("size"))
        model = str(device.get("model") or "").strip()
        if not model:
            model = "MD RAID" if bus == Bus.MD else "UNKNOWN"

        groups[bus].append({
            "name": name,
            "path": f"/dev/{name}",
            "bus": bus,
            "size_bytes": size_bytes,
            "size_gib": int(round(size_bytes / 1024 ** 3)) if size_bytes > 0 else 0,
            "model": model,
        })

    return groups


class CatalogSnapshot:
    """Devices grouped by bus plus the rotational flag of each, from one lsblk call."""

    def __init__(self, groups: Dict[Bus, List[Dict[str, Any]]], rotational: Dict[str, Optional[bool]]):
        self.groups = groups
        self.rotational = rotational


class DeviceCatalog:
    """Enumerates top-level block devices via lsblk."""

    def __init__(self, settings: Optional[Settings] = None,
                 run: Callable[[List[str]], Optional[str]] = capture_output):
        self.settings = settings or Settings()
        self._run = run

    def snapshot(self) -> CatalogSnapshot:
        if self.settings.lsblk_json is not None:
            raw = self.settings.lsblk_json
        else:
            raw = self._run(["lsblk", "-J", "-b", "-d", "-o", CATALOG_COLUMNS])

        blockdevices = parse_blockdevices(raw, "device catalog")
        rotational = {
            str(dev.get("name")): _parse_rotational(dev.get("rota"))
            for dev in blockdevices if dev.get("name")
        }
        return CatalogSnapshot(group_devices_by_bus(blockdevices), rotational)


def _matches_selector(entry: Dict[str, Any], selectors: List[str]) -> bool:
    return any(wanted in (entry["name"], entry["path"]) for wanted in selectors)


def collect_devices(options: WipeOptions, catalog: DeviceCatalog,
                    topology: TopologyGraph) -> List[DeviceDescriptor]:
    """Return the ordered devices to wipe.

    Without selectors only SATA/SAS/NVMe/USB disks are returned; MD arrays and
    disks on other transports need an explicit --device. The disk backing "/"
    is dropped unless include_system_device is set.

    Raises DiscoveryError when the catalog cannot be read.
    """
    snapshot = catalog.snapshot()
    system_disks = topology.resolve_system_disks()
    selectors = options.devices
    buses = ALL_BUSES if selectors else IMPLICIT_BUSES

    devices: List[DeviceDescriptor] = []
    for bus in buses:
        for entry in snapshot.groups.get(bus, []):
            if selectors and not _matches_selector(entry, selectors):
                continue

            is_system = entry["name"] in system_disks
            if is_system and not options.include_system_device:
                logger.info(
                    f"Info: skipping system disk {entry['path']} (contains '/'). "
                    "Use --include-system-device to include it."
                )
                continue

            rotational = snapshot.rotational.get(entry["name"])
            devices.append(DeviceDescriptor(
                name=entry["name"],
                path=entry["path"],
                bus=entry["bus"],
                size_bytes=entry["size_bytes"],
                model=entry["model"],
                is_ssd=rotational is False,
                is_system=is_system,
            ))

    if selectors and not devices:
        logger.error("Error: no matching block devices found for requested --device arguments.")

    return devices
