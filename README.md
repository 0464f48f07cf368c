# rezolus

Tools for collecting system performance telemetry on Linux.

- `rezolus.metrics`: counters, gauges, per-CPU / per-cgroup / per-device
  metric groups (`CounterGroup`, `GaugeGroup`), log-linear histograms
  (`Histogram`) and a `Registry` that holds them by name and metadata.
- `rezolus.catalog_cpu` and `rezolus.catalog_os`: `register(registry)`
  registers the standard metric definitions (CPU usage, perf counters,
  frequency, TLB flushes, GPU, block I/O, scheduler; syscalls, memory,
  network, file descriptors, TCP) for the current platform and returns them
  in a dict keyed by identifier such as `"MEMORY_TOTAL"`. On platforms other
  than Linux (and, for `catalog_cpu`, macOS) nothing is registered.
- `rezolus.sampler`: the `Sampler` base class with an async `refresh()`, and
  `refresh_all(samplers)` to refresh several concurrently.
- `rezolus.procfs`: parsers (`count_online_cpus`, `parse_meminfo`,
  `parse_vmstat`, `parse_file_nr`, `count_tcp_states`) and samplers
  (`CoresSampler`, `MeminfoSampler`, `VmstatSampler`, `DescriptorsSampler`,
  `ConnectionStateSampler`) that keep a kernel file open and re-read it on
  each refresh.
- `rezolus.sysfs`: `SysfsSampler`, which sums a statistic across network
  interfaces under `/sys/class/net`, and `interfaces_sampler(interfaces)` for
  carrier changes, receive errors and drops.
- `rezolus.rusage`: `RusageSampler` reports the current process's own
  resource usage; `rusage_values` converts a `getrusage()` result.
- `rezolus.cgroup`: formatting cgroup display names and attaching them as
  `name` metadata to per-cgroup metric groups.
- `rezolus.syscall`: `SyscallGroup`, `syscall_group(name)` and
  `syscall_lut(names)` to map syscall numbers to categories.
- `rezolus.recorder`: the `rezolus-record` command.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Recording

`rezolus-record` polls the `/metrics/binary` endpoint of a running Rezolus
agent at a fixed interval and appends each response body to an output file:

```
rezolus-record http://localhost:4241 /tmp/recording.bin --interval 1s --duration 60s --format raw
```

Options:

- `-i`, `--interval`: sampling interval (default `1s`); units such as `ms`,
  `s`, `m`, `h` may be combined, e.g. `1h 30m`
- `-d`, `--duration`: stop after this long; without it, recording runs until
  interrupted or a request fails
- `-f`, `--format`: `raw` or `parquet` (default `parquet`)
- `-v`, `--verbose`: more logging; repeat for more detail

The URL must not carry a path. The first Ctrl-C stops sampling and finishes
the file; a further press while it is finishing marks it to exit afterwards,
and another exits at once with status 2. The command returns 1 on a bad URL
or when files cannot be opened or written.

## Using the library

```python
import asyncio

from rezolus import catalog_os
from rezolus.metrics import Registry
from rezolus.procfs import MeminfoSampler
from rezolus.sampler import refresh_all

registry = Registry()
metrics = catalog_os.register(registry)

meminfo = MeminfoSampler({
    "MemTotal": metrics["MEMORY_TOTAL"],
    "MemFree": metrics["MEMORY_FREE"],
})
asyncio.run(refresh_all([meminfo]))
print(metrics["MEMORY_TOTAL"].value)
```

## What this package does not do

- It does not write Parquet by itself. With `--format parquet` (the default)
  the samples are gathered in a temporary file and handed to
  `Config.converter`; the command line sets no converter, so it reports
  "error saving parquet file" and the output file stays empty. Use
  `--format raw`, or call `record()` with a `Config` whose `converter` writes
  the destination.
- It has no kernel tracing collectors and no GPU sampler. The metrics for CPU
  usage, perf counters, frequency, TLB flushes, block I/O, scheduler, syscalls,
  network traffic and TCP latency are defined by the catalogues but nothing in
  the package fills them.
- It does not run an agent or serve metrics over HTTP; the recorder only reads
  from an agent that is already running.