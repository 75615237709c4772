"""Data models for block devices, wipe options and wipe plans."""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator


GIB = 1024 * 1024 * 1024


class Bus(str, Enum):
    """Transport a block device is attached through."""
    SATA = "SATA"
    SAS = "SAS"
    NVME = "NVME"
    USB = "USB"
    MD = "MD"
    OTHER = "OTHER"


# Buses where firmware secure erase is attempted without an explicit request.
SECURE_ERASE_BUSES = (Bus.SATA, Bus.SAS, Bus.NVME)


class DeviceDescriptor(BaseModel):
    """A block device eligible for wiping."""
    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    bus: Bus = Bus.OTHER
    size_bytes: int = Field(default=0, ge=0)
    model: str = "UNKNOWN"
    is_ssd: bool = False
    is_system: bool = False

    @property
    def size_gib(self) -> int:
        if self.size_bytes <= 0:
            return 0
        return int(round(self.size_bytes / GIB))


class WipeOptions(BaseModel):
    """Operator options controlling discovery, planning and execution."""
    dry_run: bool = False
    confirm_all: bool = False
    passes: int = Field(default=0, ge=0)
    secure_erase: bool = False
    auto_secure_erase: bool = True
    random_data_write: bool = False
    random_duration_seconds: int = Field(default=300, ge=1)
    random_workers_per_device: int = Field(default=2, ge=1)
    stop_md_arrays: bool = False
    include_system_device: bool = False
    devices: List[str] = Field(default_factory=list)


class StepKind(str, Enum):
    SIGNATURE_WIPE = "signature_wipe"
    DISCARD = "discard"
    HEADER_ZERO = "header_zero"
    OVERWRITE_PASS = "overwrite_pass"
    SECURE_ERASE_IDENTIFY = "secure_erase_identify"
    SECURE_ERASE_SET_PASSWORD = "secure_erase_set_password"
    SECURE_ERASE = "secure_erase"
    RANDOM_WRITE = "random_write"


class WipeStep(BaseModel):
    """One shell command in a device wipe plan."""
    model_config = ConfigDict(frozen=True)

    description: str
    command: str
    kind: StepKind
    covers_whole_device: bool = False  # success alone means the full range was overwritten
    best_effort: bool = False
    failure_hint: Optional[str] = None


class TopologyNode(BaseModel):
    """A node of the lsblk device tree."""
    name: str = ""
    type: str = ""
    path: Optional[str] = None
    mountpoint: Optional[str] = None
    pkname: Optional[str] = None
    fstype: Optional[str] = None
    size_bytes: int = 0
    model: Optional[str] = None
    children: List["TopologyNode"] = Field(default_factory=list)

    @field_validator("mountpoint", "pkname", "fstype", "model", "path", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _lower_type(cls, value):
        return str(value or "").strip().lower()

    @field_validator("size_bytes", mode="before")
    @classmethod
    def _size(cls, value):
        try:
            return max(int(value or 0), 0)
        except (TypeError, ValueError):
            return 0

    @field_validator("children", mode="before")
    @classmethod
    def _children(cls, value):
        return value or []

    @property
    def device_path(self) -> str:
        return self.path or f"/dev/{self.name}"

    @property
    def is_disk(self) -> bool:
        return self.type == "disk"

    @property
    def is_raid(self) -> bool:
        return self.type.startswith("raid")


class RaidArrayMatch(BaseModel):
    """A software RAID array that contains at least one disk being wiped."""
    path: str
    member_disks: List[str] = Field(default_factory=list)
    mountpoints: List[str] = Field(default_factory=list)
    swap_devices: List[str] = Field(default_factory=list)
