class HostReportError(Exception):
    """Base class for all errors raised by hostreport."""


class ConfigError(HostReportError):
    """
    Raised when the configuration cannot be read or is invalid.

    A ConfigError is fatal: the run stops before any host is probed.
    """


class ProbeError(HostReportError):
    """
    Raised by a sub-probe whose failure takes the whole host down.

    Carries the host identifier so the collector can log it.
    """

    def __init__(self, host: str, message: str) -> None:
        super().__init__(f"{host}: {message}")
        self.host = host
        self.message = message
