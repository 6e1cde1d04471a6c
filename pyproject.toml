[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "linuxchecks"
version = "0.1.0"
description = "Nagios-compatible monitoring checks for Linux systems: CPU, I/O wait, memory, load, interrupts, context switches, processes, mounts, Docker, Fibre Channel and file counts."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "nagios",
    "icinga",
    "monitoring",
    "linux",
    "plugin",
    "procfs",
    "sysfs",
    "perfdata",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
check_cpu = "linuxchecks.cpu:main"
check_iowait = "linuxchecks.cpu:main"
check_cswch = "linuxchecks.cswch:main"
check_docker = "linuxchecks.docker:main"
check_fc = "linuxchecks.fc:main"
check_filecount = "linuxchecks.filecount:main"
check_ifmountfs = "linuxchecks.ifmountfs:main"
check_intr = "linuxchecks.intr:main"
check_load = "linuxchecks.load:main"
check_memory = "linuxchecks.memory:main"
check_nbprocs = "linuxchecks.nbprocs:main"

[tool.hatch.build.targets.wheel]
packages = ["linuxchecks"]

[tool.pytest.ini_options]
addopts = "-ra"
