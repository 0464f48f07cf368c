[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rezolus"
version = "0.1.0"
description = "System performance telemetry: a metric registry, procfs/sysfs samplers and an on-demand recorder"
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = ["metrics", "telemetry", "monitoring", "procfs", "sysfs", "performance"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
rezolus-record = "rezolus.recorder:main"

[tool.hatch.build.targets.wheel]
packages = ["rezolus"]

[tool.pytest.ini_options]
addopts = "-ra"
