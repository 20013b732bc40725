from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePosixPath


@dataclass(frozen=True)
class FileInfo:
    path: str
    size: int = 0
    last_modified: int = 0
    is_directory: bool = False

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def is_file(self) -> bool:
        return not self.is_directory

    @property
    def modified_time(self) -> datetime:
        """Last modification time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.last_modified / 1000, tz=timezone.utc)

    def __str__(self) -> str:
        kind = "DIRECTORY" if self.is_directory else "FILE"
        return f"{kind} {self.path}"


def to_epoch_millis(moment: datetime) -> int:
    """Convert a datetime to milliseconds since the epoch.

    Naive datetimes are taken to be UTC, which is what MLSD reports.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)
