# linuxchecks

Monitoring checks for Linux hosts that follow the Nagios plugin
conventions. Each check reads from `/proc`, `/sys` or another local source,
prints one status line with performance data after the `|`, and exits with
the usual status code:

| Exit code | Meaning  |
|-----------|----------|
| 0         | OK       |
| 1         | WARNING  |
| 2         | CRITICAL |
| 3         | UNKNOWN  |

Bad arguments, unreadable data and other failures end with UNKNOWN and a
message on standard error. Every check answers `-h/--help` and
`-V/--version`.

## Installation

```
pip install .
```

Running the test suite:

```
pip install .[test]
pytest
```

## Thresholds

Most checks take `-w/--warning` and `-c/--critical` as ranges
(`linuxchecks.plugin.Range`); a value alerts when it falls outside the
range, or inside it when the range starts with `@`:

| Range    | Alerts when the value is |
|----------|--------------------------|
| `10`     | below 0 or above 10      |
| `10:`    | below 10                 |
| `~:10`   | above 10                 |
| `10:20`  | outside 10..20           |
| `@10:20` | inside 10..20            |

Critical is checked before warning. `%` signs are ignored when parsing;
`check_cpu` and `check_memory` require every threshold given to carry one,
for example `-w 85% -c 95%`.

Checks that sample counters over time take two optional positional
arguments, `delay` (seconds between samples, 1 to 60, default 1) and
`count` (number of samples, at most 10, default 2). A `count` of 1 reports
totals since boot instead of rates.

## Checks

### check_cpu and check_iowait

CPU utilisation in user mode (`check_cpu`) or I/O wait time
(`check_iowait`); the mode is chosen by the name the command is run under.

```
check_cpu -m -p -w 85% -c 95%
check_cpu -w 85% -c 95% 1 2
check_iowait -w 20% -c 40%
check_cpu --cpuinfo
```

`-m/--no-cpu-model` drops the CPU model from the message, `-p/--per-cpu`
also reports every CPU, `-v/--verbose` prints each sample, and
`-i/--cpuinfo` prints the CPU characteristics (architecture, topology,
frequencies, governors) and exits with UNKNOWN.

### check_memory

Percentage of memory used, or available with `-a/--available`.

```
check_memory --available -w 20%: -c 10%:
check_memory --available --units MiB -w 20%: -c 10%:
check_memory --vmstats -w 80% -c 90%
```

Output units: `-b`, `-k` (default), `-m`, `-g`, or `-u/--units` with one
of `B`, `bytes`, `kB`, `KiB`, `MB`, `MiB`, `GB`, `GiB` (all binary
multiples). `-s/--vmstats` samples `/proc/vmstat` one second apart and adds
page-in, page-out and major fault rates. `-C/--caches` is accepted and
ignored. When the kernel does not report `MemAvailable`, an estimate is
computed from the free memory, page cache and reclaimable slab.

### check_load

Load average with separate `WARNING,CRITICAL` pairs for the 1, 5 and 15
minute values; the warning must be lower than the critical.
`-r/--percpu` divides the averages by the number of online CPUs.

```
check_load -r --load1=2,3 --load15=1.5,2.5
```

### check_cswch

Context switches per second across all CPUs.

```
check_cswch 1 2
```

### check_intr

Interrupts per second, with a per-CPU breakdown from `/proc/interrupts`
when at least two samples are taken.

```
check_intr -w 10000 1 2
```

### check_nbprocs

Total number of processes, with per-user counts and their process limits in
the performance data; `--threads` counts threads instead, `-v/--verbose`
lists each user's count.

```
check_nbprocs
check_nbprocs --threads -w 1500 -c 2000
```

### check_ifmountfs

CRITICAL when any of the given mount points is missing from
`/proc/self/mounts`; the missing ones are listed.

```
check_ifmountfs /mnt/nfs-data /mnt/cdrom
```

### check_docker

Number of running Docker containers, optionally only those of one image,
queried from the daemon over `/var/run/docker.sock`. With `-M/--memory` it
reports instead the memory of the containers from the cgroup
`memory.stat` file, sampled `delay` seconds apart for the paging counters;
units are chosen with `-b`, `-k` (default), `-m`, `-g`. `--memory` and
`--image` cannot be combined.

```
check_docker -w 100 -c 120
check_docker --image nginx -c 5:
check_docker --memory -m -w 512 -c 640 5
```

### check_fc

Number of Fibre Channel ports online under `/sys/class/fc_host`, with
frame and error counters. `-i/--fchostinfo` lists the hosts (and, with
`-v`, their attributes) and exits with UNKNOWN.

```
check_fc -c 2:
check_fc -i -v
```

### check_filecount

Number of entries in one or more directories; hidden files are skipped by
default.

```
check_filecount -l -r /tmp
check_filecount -w 150 -c 200 -f -r /var/log/myapp /tmp/myapp
check_filecount -w 10 -c 15 -f -r -s -10.5k /tmp/myapp
check_filecount -r -t -1h /tmp/myapp
check_filecount -f -n "myapp-202207*.log" /var/log/myapp
```

`-f` counts regular files only, `-H` includes hidden files, `-l` ignores
symlinks, `-u` ignores files of unknown type, `-r` descends into
subdirectories and `-n PATTERN` matches file names against a shell
wildcard. `-s SIZE` counts files at least SIZE bytes (smaller than it when
negative), with the decimal multipliers `b k m g t p`. `-t AGE` counts files
untouched for AGE seconds (touched within it when negative), with the
multipliers `s m h d w y`.

## Reading from other files

The readers take an explicit path, and otherwise honour these environment
variables before the kernel files: `NPL_TEST_PATH_PROCSTAT`,
`NPL_TEST_PATH_PROCINTERRUPTS`, `NPL_TEST_PATH_PROCCPUINFO`,
`NPL_TEST_PATH_PROCMEMINFO`, `NPL_TEST_PATH_PROCVMSTAT` and
`NPL_TEST_PATH_SYSDOCKERMEMSTAT`.

## Using the library

Every check is importable and has `main(argv=None)`, returning the exit
code. The pieces behind them can be used directly, for example
`linuxchecks.plugin.Thresholds`, `linuxchecks.procstat.read_cpu_times`,
`linuxchecks.cpu.usage_delta`, `linuxchecks.load.normalize_loadavg`,
`linuxchecks.meminfo.SystemMemory`, `linuxchecks.docker.DockerMemory`,
`linuxchecks.fc.fc_host_status` or `linuxchecks.filecount.count_files`.

## Not included

There are no checks here for swap, paging, disk space, network interfaces
or CPU frequency; the Docker memory check reads only the cgroup v1
`memory.stat` layout.