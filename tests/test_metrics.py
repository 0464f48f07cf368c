import pytest

from rezolus.metrics import (
    HISTOGRAM_GROUPING_POWER,
    LATENCY_HISTOGRAM_MAX,
    U64_MAX,
    Counter,
    CounterGroup,
    Gauge,
    GaugeGroup,
    Histogram,
    Metric,
    Registry,
)


def test_counter_set_returns_previous():
    counter = Counter()
    assert counter.set(5) == 0
    assert counter.set(9) == 5
    assert counter.value == 9


def test_counter_add_wraps():
    counter = Counter()
    counter.set(U64_MAX)
    counter.add(1)
    assert counter.value == 0


def test_counter_rejects_negative():
    with pytest.raises(ValueError):
        Counter().set(-1)


def test_gauge_accepts_negative_and_adds():
    gauge = Gauge()
    gauge.set(-10)
    gauge.add(4)
    assert gauge.value == -6


def test_gauge_rejects_out_of_range():
    with pytest.raises(ValueError):
        Gauge().set(2**63)


def test_counter_group_values_and_bounds():
    group = CounterGroup(4)
    group.set(2, 7)
    group.add(2, 3)
    assert group.values() == [0, 0, 10, 0]
    with pytest.raises(IndexError):
        group.set(4, 1)


def test_group_metadata_is_per_index_and_copied():
    group = CounterGroup(3)
    group.insert_metadata(1, "name", "/system.slice")
    meta = group.metadata(1)
    meta["name"] = "changed"
    assert group.metadata(1) == {"name": "/system.slice"}
    assert group.metadata(0) == {}


def test_gauge_group_allows_negative():
    group = GaugeGroup(2)
    group.set(0, -3)
    assert group.values() == [-3, 0]


def test_histogram_small_values_map_directly():
    hist = Histogram(2, 64)
    for value in range(8):
        assert hist.bucket_index(value) == value
        assert hist.bucket_range(value) == (value, value)


@pytest.mark.parametrize("value", [8, 9, 10, 15, 16, 1000, 123456789, 2**40 + 17, U64_MAX])
def test_histogram_bucket_contains_value(value):
    hist = Histogram(HISTOGRAM_GROUPING_POWER, LATENCY_HISTOGRAM_MAX)
    lower, upper = hist.bucket_range(hist.bucket_index(value))
    assert lower <= value <= upper


def test_histogram_buckets_are_contiguous():
    hist = Histogram(3, 20)
    previous_upper = -1
    for index in range(len(hist)):
        lower, upper = hist.bucket_range(index)
        assert lower == previous_upper + 1
        assert upper >= lower
        previous_upper = upper
    assert previous_upper == hist.max_value


def test_histogram_last_bucket_holds_max():
    hist = Histogram(2, 64)
    assert hist.bucket_index(U64_MAX) == len(hist) - 1


def test_histogram_rejects_out_of_range():
    hist = Histogram(2, 10)
    with pytest.raises(ValueError):
        hist.increment(2**10)
    with pytest.raises(IndexError):
        hist.bucket_range(len(hist))


def test_histogram_invalid_config():
    with pytest.raises(ValueError):
        Histogram(10, 10)


def test_histogram_increment_total():
    hist = Histogram(2, 64)
    hist.increment(3)
    hist.increment(5000, 4)
    assert hist.total() == 5
    assert hist.buckets[hist.bucket_index(5000)] == 4


def test_registry_register_and_select():
    registry = Registry()
    read = registry.register("blockio_latency", Histogram(2, 64), "read", {"op": "read"})
    registry.register("blockio_latency", Histogram(2, 64), "write", {"op": "write"})
    registry.register("cpu_cores", Gauge())
    assert len(registry) == 3
    selected = registry.select("blockio_latency")
    assert [entry.metadata["op"] for entry in selected] == ["read", "write"]
    assert selected[0].metric is read
    assert [entry.name for entry in registry] == ["blockio_latency", "blockio_latency", "cpu_cores"]


def test_registry_rejects_duplicates():
    registry = Registry()
    registry.register("rezolus_cpu_usage", Counter(), metadata={"state": "user"})
    with pytest.raises(ValueError):
        registry.register("rezolus_cpu_usage", Counter(), metadata={"state": "user"})


def test_metric_entry_fields():
    registry = Registry()
    gauge = Gauge()
    registry.register("cpu_cores", gauge, "online cores")
    (entry,) = list(registry)
    assert entry == Metric("cpu_cores", gauge, "online cores", {})