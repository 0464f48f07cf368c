"""System performance telemetry: metrics, catalogues, procfs/sysfs samplers and a recorder."""

__version__ = "0.1.0"