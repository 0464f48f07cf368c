import pytest

from rezolus.metrics import Counter
from rezolus.sysfs import INTERFACE_STATS, SysfsSampler, interfaces_sampler


def _write(root, interface, stat, text):
    path = root / interface / "statistics" / stat
    path.parent.mkdir(parents=True, exist_ok=True)
    path.resolve().parent.mkdir(parents=True, exist_ok=True)
    path.resolve().write_text(text)
    return path.resolve()


@pytest.mark.asyncio
async def test_sums_over_interfaces(tmp_path):
    _write(tmp_path, "eth0", "rx_dropped", "5\n")
    _write(tmp_path, "lo", "rx_dropped", "7\n")
    counter = Counter()
    sampler = SysfsSampler([(counter, "rx_dropped")], ["eth0", "lo"], str(tmp_path))
    await sampler.refresh()
    assert counter.value == 5 + 7


@pytest.mark.asyncio
async def test_unparseable_interface_is_left_out(tmp_path):
    _write(tmp_path, "eth0", "../carrier_changes", "3\n")
    _write(tmp_path, "lo", "../carrier_changes", "bad\n")
    counter = Counter()
    sampler = SysfsSampler([(counter, "../carrier_changes")], ["eth0", "lo"], str(tmp_path))
    await sampler.refresh()
    assert counter.value == 3


@pytest.mark.asyncio
async def test_bad_value_skips_update(tmp_path):
    path = _write(tmp_path, "eth0", "tx_dropped", "4\n")
    counter = Counter()
    sampler = SysfsSampler([(counter, "tx_dropped")], ["eth0"], str(tmp_path))
    await sampler.refresh()
    path.write_text("oops\n")
    await sampler.refresh()
    assert counter.value == 4
    path.write_text("9\n")
    await sampler.refresh()
    assert counter.value == 9


def test_missing_statistic_raises(tmp_path):
    (tmp_path / "eth0" / "statistics").mkdir(parents=True)
    with pytest.raises(FileNotFoundError):
        SysfsSampler([(Counter(), "rx_dropped")], ["eth0"], str(tmp_path))


@pytest.mark.asyncio
async def test_interfaces_sampler(tmp_path):
    for stat in INTERFACE_STATS:
        _write(tmp_path, "eth0", stat, "11\n")
    sampler = interfaces_sampler(["eth0"], str(tmp_path))
    await sampler.refresh()
    assert set(sampler.counters) == set(INTERFACE_STATS)
    assert {counter.value for counter in sampler.counters.values()} == {11}