import shlex

from storage_wipe.models import Bus, StepKind
from storage_wipe.plan import WipePlanBuilder, full_pass_block_count


GIB = 1024 * 1024 * 1024


def _index(plan, kind):
    for i, step in enumerate(plan):
        if step.kind == kind:
            return i
    return -1


def test_baseline_plan_has_three_non_covering_steps(make_device, make_options):
    plan = WipePlanBuilder().build(make_device("/dev/sda", size_bytes=100 * GIB), make_options())

    assert len(plan) == 3
    assert "wipefs -a" in plan[0].description
    assert "blkdiscard" in plan[1].description
    assert "dd zero header" in plan[2].description
    assert not any(step.covers_whole_device for step in plan)


def test_baseline_commands(make_device, make_options):
    plan = WipePlanBuilder().build(make_device("/dev/sda"), make_options())
    commands = [step.command for step in plan]

    assert commands[0] == "wipefs -a /dev/sda"
    assert commands[1] == "blkdiscard /dev/sda"
    assert commands[2].startswith("dd if=/dev/zero of=/dev/sda bs=1M count=20")
    assert plan[1].best_effort


def test_passes_add_covering_overwrites(make_device, make_options):
    plan = WipePlanBuilder().build(make_device(size_bytes=20 * GIB), make_options(passes=3))

    passes = [s for s in plan if s.kind == StepKind.OVERWRITE_PASS]
    assert len(passes) == 3
    assert all(s.covers_whole_device for s in passes)
    assert [s for s in plan if s.covers_whole_device] == passes


def test_single_pass_hdd_scenario(make_device, make_options):
    plan = WipePlanBuilder().build(
        make_device("/dev/sdb", bus=Bus.SATA, size_bytes=10 * GIB, is_ssd=False),
        make_options(passes=1),
    )

    assert len(plan) == 4
    assert plan[-1].covers_whole_device
    assert "count=10240 " in plan[-1].command
    assert not any("hdparm" in s.command or "nvme" in s.command for s in plan)


def test_block_count_rounds_up_and_has_floor_of_one():
    assert full_pass_block_count(0) == 1
    assert full_pass_block_count(512 * 1024) == 1
    assert full_pass_block_count(1024 * 1024 + 1) == 2
    assert full_pass_block_count(10 * GIB) == 10240


def test_tiny_device_overwrite_uses_one_block(make_device, make_options):
    plan = WipePlanBuilder().build(make_device(size_bytes=512 * 1024), make_options(passes=1))
    assert "count=1 " in plan[-1].command


def test_unaligned_device_overwrite_explains_enospc(make_device, make_options):
    plan = WipePlanBuilder().build(make_device(size_bytes=GIB + 4096), make_options(passes=1))

    step = plan[-1]
    assert "count=1025 " in step.command
    assert step.description.endswith("(size not MiB-aligned; dd ends with ENOSPC)")
    assert "ENOSPC" in step.failure_hint

    aligned = WipePlanBuilder().build(make_device(size_bytes=GIB), make_options(passes=1))[-1]
    assert aligned.failure_hint is None
    assert "ENOSPC" not in aligned.description


def test_nvme_ssd_auto_secure_erase_scenario(make_device, make_options):
    device = make_device("/dev/nvme0n1", bus=Bus.NVME, size_bytes=10 * GIB, is_ssd=True)
    plan = WipePlanBuilder().build(device, make_options(passes=0))

    assert len(plan) == 5
    assert plan[3].command == "nvme id-ctrl /dev/nvme0n1"
    assert not plan[3].covers_whole_device
    assert plan[4].command == "nvme format /dev/nvme0n1 --ses=1 --force"
    assert plan[4].covers_whole_device


def test_sata_ssd_auto_secure_erase_uses_hdparm(make_device, make_options):
    plan = WipePlanBuilder().build(make_device("/dev/sdf", is_ssd=True), make_options())
    descriptions = [s.description for s in plan]

    assert "hdparm identify /dev/sdf" in descriptions
    assert "hdparm security-set-pass on /dev/sdf" in descriptions
    assert "hdparm security-erase on /dev/sdf" in descriptions
    assert [s.covers_whole_device for s in plan[3:]] == [False, False, True]


def test_no_auto_secure_erase_for_hdd_or_usb(make_device, make_options):
    builder = WipePlanBuilder()
    hdd = builder.build(make_device(is_ssd=False), make_options())
    usb = builder.build(make_device("/dev/sdu", bus=Bus.USB, is_ssd=True), make_options())

    assert len(hdd) == 3
    assert len(usb) == 3


def test_secure_erase_disabled_everywhere(make_device, make_options):
    builder = WipePlanBuilder()
    options = make_options(auto_secure_erase=False, secure_erase=False)
    for device in (
        make_device("/dev/sdg", bus=Bus.SATA, is_ssd=True),
        make_device("/dev/sdh", bus=Bus.SAS, is_ssd=True),
        make_device("/dev/nvme3n1", bus=Bus.NVME, is_ssd=True),
    ):
        commands = " ".join(s.command for s in builder.build(device, options))
        assert "security-erase" not in commands
        assert "nvme format" not in commands


def test_explicit_secure_erase_on_hdd(make_device, make_options):
    builder = WipePlanBuilder()
    device = make_device("/dev/sde", is_ssd=False)
    options = make_options(secure_erase=True, auto_secure_erase=False)

    plan = builder.build(device, options)
    assert builder.secure_erase_trigger(device, options) == "explicit"
    assert plan[-1].kind == StepKind.SECURE_ERASE
    assert "--security-erase" in plan[-1].command


def test_explicit_secure_erase_nvme_when_auto_disabled(make_device, make_options):
    device = make_device("/dev/nvme1n1", bus=Bus.NVME, is_ssd=True)
    plan = WipePlanBuilder().build(device, make_options(secure_erase=True, auto_secure_erase=False))

    covering = [s for s in plan if s.covers_whole_device]
    assert len(covering) == 1
    assert covering[0].command.startswith("nvme format /dev/nvme1n1")


def test_trigger_reports_auto(make_device, make_options):
    builder = WipePlanBuilder()
    device = make_device("/dev/nvme0n1", bus=Bus.NVME, is_ssd=True)
    assert builder.secure_erase_trigger(device, make_options()) == "auto"
    assert builder.secure_erase_trigger(make_device(), make_options()) is None


def test_security_password_is_configurable(make_device, make_options):
    plan = WipePlanBuilder(security_password="s3cret").build(
        make_device(is_ssd=True), make_options()
    )
    assert plan[-1].command == "hdparm --user-master u --security-erase s3cret /dev/sda"


def test_random_write_step_arguments(make_device, make_options):
    plan = WipePlanBuilder().build(
        make_device("/dev/sdi"),
        make_options(random_data_write=True, random_duration_seconds=120, random_workers_per_device=3),
    )
    last = plan[-1]

    assert last.kind == StepKind.RANDOM_WRITE
    assert last.command.startswith("bash -c ")
    assert last.command.endswith(" -- /dev/sdi 120 3")
    assert "random data write with 3 workers for 120s on /dev/sdi" == last.description
    assert not last.covers_whole_device


def test_random_write_script_survives_shell_parsing(make_device, make_options):
    plan = WipePlanBuilder().build(make_device("/dev/sdi"), make_options(random_data_write=True))
    argv = shlex.split(plan[-1].command)

    assert argv[:2] == ["bash", "-c"]
    assert "worker_loop &" in argv[2]
    assert "oflag=direct" in argv[2]
    assert argv[3:] == ["--", "/dev/sdi", "300", "2"]


def test_full_ordering(make_device, make_options):
    device = make_device("/dev/sdn", size_bytes=80 * GIB, is_ssd=True)
    plan = WipePlanBuilder().build(
        device, make_options(passes=2, secure_erase=True, random_data_write=True)
    )

    signature = _index(plan, StepKind.SIGNATURE_WIPE)
    first_pass = _index(plan, StepKind.OVERWRITE_PASS)
    first_erase = _index(plan, StepKind.SECURE_ERASE_IDENTIFY)
    random_write = _index(plan, StepKind.RANDOM_WRITE)

    assert 0 == signature < first_pass < first_erase < random_write == len(plan) - 1


def test_paths_are_shell_quoted(make_device, make_options):
    device = make_device("/dev/disk/by-id/ata-odd name", bus=Bus.NVME, is_ssd=True)
    plan = WipePlanBuilder().build(device, make_options(passes=1, random_data_write=True))
    quoted = shlex.quote(device.path)

    assert quoted.startswith("'")
    for step in plan:
        if step.kind != StepKind.RANDOM_WRITE:
            assert quoted in step.command
    assert plan[-1].command.endswith(f"-- {quoted} 300 2")


def test_build_is_deterministic(make_device, make_options):
    builder = WipePlanBuilder()
    device = make_device(is_ssd=True)
    options = make_options(passes=1, random_data_write=True)
    assert builder.build(device, options) == builder.build(device, options)
