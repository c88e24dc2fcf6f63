"""Host health report: reachability, OS, disk and service checks for a host list."""

__version__ = "1.0.0"
