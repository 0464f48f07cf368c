"""Grouping of system calls into broad categories."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import IntEnum

MAX_SYSCALL_ID = 1024


class SyscallGroup(IntEnum):
    """The category a system call is counted under."""

    OTHER = 0
    READ = 1
    WRITE = 2
    POLL = 3
    LOCK = 4
    TIME = 5
    SLEEP = 6
    SOCKET = 7
    YIELD = 8


_MEMBERS: dict[SyscallGroup, tuple[str, ...]] = {
    SyscallGroup.READ: (
        "pread64", "preadv", "preadv2", "read", "readv", "recvfrom", "recvmmsg", "recvmsg",
    ),
    SyscallGroup.WRITE: (
        "pwrite64", "pwritev", "pwritev2", "sendmmsg", "sendmsg", "sendto", "write", "writev",
    ),
    SyscallGroup.POLL: (
        "epoll_create", "epoll_create1", "epoll_ctl", "epoll_ctl_old", "epoll_pwait",
        "epoll_pwait2", "epoll_wait", "epoll_wait_old", "poll", "ppoll", "ppoll_time64",
        "pselect6", "pselect6_time64", "select",
    ),
    SyscallGroup.LOCK: ("futex",),
    SyscallGroup.TIME: (
        "adjtimex", "clock_adjtime", "clock_getres", "clock_gettime", "clock_settime",
        "gettimeofday", "settimeofday", "time",
    ),
    SyscallGroup.SLEEP: ("clock_nanosleep", "nanosleep"),
    SyscallGroup.SOCKET: (
        "accept", "bind", "connect", "getpeername", "getsockname", "getsockopt", "listen",
        "setsockopt", "shutdown", "socket", "socketpair",
    ),
    SyscallGroup.YIELD: ("sched_yield",),
}

_GROUP_BY_NAME = {name: group for group, names in _MEMBERS.items() for name in names}


def syscall_group(name: str | None) -> SyscallGroup:
    """Return the category of a system call; unknown or missing names are OTHER."""
    if name is None:
        return SyscallGroup.OTHER
    return _GROUP_BY_NAME.get(name, SyscallGroup.OTHER)


def syscall_lut(names: Mapping[int, str] | Iterable[str | None]) -> list[int]:
    """Build a lookup table from syscall number to category for ids below MAX_SYSCALL_ID.

    `names` maps syscall numbers to names, or lists names in syscall-number order.
    """
    if isinstance(names, Mapping):
        lookup = names
    else:
        lookup = dict(enumerate(names))
    return [int(syscall_group(lookup.get(id))) for id in range(MAX_SYSCALL_ID)]