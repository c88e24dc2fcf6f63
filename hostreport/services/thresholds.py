from hostreport.models.host import Level, ServiceState


def disk_free_pct(free_bytes: int, total_bytes: int) -> float:
    """Free space in percent, rounded to one decimal. Empty volumes count as 0."""
    if total_bytes <= 0:
        return 0.0
    return round(free_bytes / total_bytes * 100.0, 1)


def classify_disk_free_pct(pct: float, warn_threshold: float, crit_threshold: float) -> Level:
    """
    Map a disk free percentage to a severity level.

    Only values strictly below a threshold are flagged: a volume with exactly
    crit_threshold percent free is "warn", not "crit".
    """
    if pct < crit_threshold:
        return Level.CRIT
    if pct < warn_threshold:
        return Level.WARN
    return Level.OK


def classify_service_status(status: str) -> Level:
    """running -> ok, stopped -> crit, anything else (including not-found) -> warn."""
    if status == ServiceState.RUNNING.value:
        return Level.OK
    if status == ServiceState.STOPPED.value:
        return Level.CRIT
    return Level.WARN
