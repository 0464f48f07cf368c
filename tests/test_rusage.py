from types import SimpleNamespace

import pytest

from rezolus.metrics import KIBIBYTES, SECONDS, Counter, Gauge, Registry
from rezolus.rusage import RusageSampler, rusage_values


def _usage(**overrides):
    fields = dict(
        ru_utime=2.0, ru_stime=0.0, ru_maxrss=10, ru_minflt=11, ru_majflt=12,
        ru_inblock=13, ru_oublock=14, ru_nvcsw=15, ru_nivcsw=16,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_rusage_values_conversions():
    values = rusage_values(_usage())
    assert values["RU_UTIME"] == 2 * SECONDS
    assert values["RU_STIME"] == 0
    assert values["RU_MAXRSS"] == 10 * KIBIBYTES


def test_rusage_values_pass_counts_through():
    values = rusage_values(_usage())
    assert [values[key] for key in ("RU_MINFLT", "RU_MAJFLT", "RU_INBLOCK", "RU_OUBLOCK",
                                    "RU_NVCSW", "RU_NIVCSW")] == [11, 12, 13, 14, 15, 16]


def test_rusage_values_keys():
    assert set(rusage_values(_usage())) == {
        "RU_UTIME", "RU_STIME", "RU_MAXRSS", "RU_MINFLT", "RU_MAJFLT",
        "RU_INBLOCK", "RU_OUBLOCK", "RU_NVCSW", "RU_NIVCSW",
    }


@pytest.mark.asyncio
async def test_sampler_with_mapping():
    maxrss = Gauge()
    utime = Counter()
    sampler = RusageSampler({"RU_MAXRSS": maxrss, "RU_UTIME": utime})
    await sampler.refresh()
    assert maxrss.value > 0
    assert maxrss.value % KIBIBYTES == 0


@pytest.mark.asyncio
async def test_sampler_with_registry():
    registry = Registry()
    sampler = RusageSampler(registry)
    assert len(registry) == 9
    cpu = registry.select("rezolus_cpu_usage")
    assert {entry.metadata["state"] for entry in cpu} == {"user", "system"}
    await sampler.refresh()
    rss = registry.select("rezolus_memory_usage_resident_set_size")[0].metric
    assert rss.value > 0


def test_unknown_key_rejected():
    with pytest.raises(KeyError):
        RusageSampler({"RU_BOGUS": Counter()})