"""Nagios-compatible monitoring checks for Linux: CPU, memory, load, interrupts,
context switches, processes, mounts, Docker, Fibre Channel and file counts."""

__version__ = "0.1.0"