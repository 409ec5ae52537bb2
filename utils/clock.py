from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Data/hora atual em UTC, sem tzinfo (o banco grava DateTime sem fuso).
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
