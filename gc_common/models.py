"""
Data models for GC log analysis.

These models represent the domain objects used throughout the application,
independent of the transport and of the underlying storage mechanism.
Every model converts to and from plain dictionaries so it can be stored as
JSON and served over HTTP.
"""

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import Any

from .errors import StatusDecodeError


class JobStatus(str, Enum):
    """
    Processing state of a ticket.

    NOT_READY : file info accepted, log not uploaded yet
    ANALYZING : log uploaded, analysis in progress
    COMPLETED : analysis result available
    ERROR     : parsing or analysis failed

    The string values are the storage tokens and must never be renamed.
    """

    NOT_READY = "NOT_READY"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)

    def encode(self) -> str:
        """Return the storage token for this status."""
        return self.value

    @classmethod
    def decode(cls, token: str) -> "JobStatus":
        """
        Parse a storage token.

        Raises:
            StatusDecodeError: If the token is not one of the known statuses
        """
        try:
            return cls(token)
        except ValueError:
            raise StatusDecodeError(f"Unknown status token: {token!r}") from None


class ResourceKind(str, Enum):
    """The four artifacts tracked per ticket."""

    STATUS = "status"
    LOGFILE = "logfile"
    META = "meta"
    RESULT = "result"


class LogType(IntEnum):
    """Category of a GC event."""

    NONE = 0
    FULL_GC = 1
    MINOR_GC = 2
    CMS_INIT_MARK = 3
    CMS_FINAL_REMARK = 4
    CMS_CONCURRENT = 5

    @classmethod
    def parse(cls, value: "LogType | int | str") -> "LogType":
        """Accept a LogType, its integer value, or its name."""
        if isinstance(value, LogType):
            return value
        if isinstance(value, str):
            try:
                return cls[value]
            except KeyError:
                raise ValueError(f"Unknown log type: {value!r}") from None
        return cls(value)


# Categories that stop application threads, in reporting order
PAUSE_LOG_TYPES = (
    LogType.FULL_GC,
    LogType.MINOR_GC,
    LogType.CMS_INIT_MARK,
    LogType.CMS_FINAL_REMARK,
)


_EVENT_TIME_FIELDS = (
    "pause_time",
    "user_time",
    "sys_time",
    "real_time",
    "ref_time",
    "cms_cpu_time",
    "cms_wall_time",
)


@dataclass(frozen=True)
class GcEvent:
    """
    One observed garbage collection occurrence.

    Produced by the log parser and never modified afterwards.
    """

    log_type: LogType
    pause_time: float = 0.0  # seconds the application was stopped
    thread: int = 0
    timestamp: int = 0  # milliseconds since JVM startup
    date_time: str = ""  # wall-clock time as printed in the log
    user_time: float = 0.0
    sys_time: float = 0.0
    real_time: float = 0.0
    ref_time: float = 0.0  # reference processing time
    cms_cpu_time: float = 0.0
    cms_wall_time: float = 0.0
    type_detail: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "log_type", LogType.parse(self.log_type))
        for name in _EVENT_TIME_FIELDS:
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
        if self.pause_time < 0:
            raise ValueError(f"pause_time must be >= 0, got {self.pause_time}")
        if self.thread < 0:
            raise ValueError(f"thread must be >= 0, got {self.thread}")

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary format (for JSON serialization)."""
        return {
            "thread": self.thread,
            "timestamp": self.timestamp,
            "datetime": self.date_time,
            "log_type": self.log_type.name,
            "pause_time": self.pause_time,
            "user_time": self.user_time,
            "sys_time": self.sys_time,
            "real_time": self.real_time,
            "ref_time": self.ref_time,
            "cms_cpu_time": self.cms_cpu_time,
            "cms_wall_time": self.cms_wall_time,
            "type_detail": self.type_detail,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GcEvent":
        """
        Create event from dictionary format.

        Missing numeric fields default to zero. Raises KeyError if log_type
        is missing and ValueError if a field has an invalid value.
        """
        return cls(
            log_type=LogType.parse(data["log_type"]),
            pause_time=float(data.get("pause_time", 0.0)),
            thread=int(data.get("thread", 0)),
            timestamp=int(data.get("timestamp", 0)),
            date_time=str(data.get("datetime", "")),
            user_time=float(data.get("user_time", 0.0)),
            sys_time=float(data.get("sys_time", 0.0)),
            real_time=float(data.get("real_time", 0.0)),
            ref_time=float(data.get("ref_time", 0.0)),
            cms_cpu_time=float(data.get("cms_cpu_time", 0.0)),
            cms_wall_time=float(data.get("cms_wall_time", 0.0)),
            type_detail=str(data.get("type_detail", "")),
        )


def _event_or_none(data: dict[str, Any] | None) -> GcEvent | None:
    return GcEvent.from_dict(data) if data is not None else None


@dataclass
class MeanRange:
    """Closed interval believed to contain the true mean."""

    lower: float
    upper: float

    def to_dict(self) -> dict[str, Any]:
        return {"lower": self.lower, "upper": self.upper}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MeanRange":
        return cls(lower=float(data["lower"]), upper=float(data["upper"]))


@dataclass
class GcEstimatedPauseTime:
    """Estimated mean pause time at one significance level."""

    level: float
    mean: MeanRange

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "mean": self.mean.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GcEstimatedPauseTime":
        return cls(level=float(data["level"]), mean=MeanRange.from_dict(data["mean"]))


@dataclass
class GcPauseOutliers:
    """Events classified as outliers at one significance level."""

    level: float
    events: list[GcEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "events": [event.to_dict() for event in self.events],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GcPauseOutliers":
        return cls(
            level=float(data["level"]),
            events=[GcEvent.from_dict(e) for e in data.get("events", [])],
        )


@dataclass
class GcPauseStat:
    """
    Summary of one pausing GC category.

    min_event and max_event are None when the category has no events.
    """

    type: LogType
    count: int = 0
    total_pause_time: float = 0.0
    sample_mean: float = 0.0
    sample_std_dev: float = 0.0
    sample_median: float = 0.0
    min_event: GcEvent | None = None
    max_event: GcEvent | None = None
    means: list[GcEstimatedPauseTime] = field(default_factory=list)
    outliers: list[GcPauseOutliers] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert stat to dictionary format (for JSON serialization)."""
        return {
            "type": self.type.name,
            "count": self.count,
            "total_pause_time": self.total_pause_time,
            "sample_mean": self.sample_mean,
            "sample_std_dev": self.sample_std_dev,
            "sample_median": self.sample_median,
            "min_event": self.min_event.to_dict()
            if self.min_event is not None
            else None,
            "max_event": self.max_event.to_dict()
            if self.max_event is not None
            else None,
            "means": [m.to_dict() for m in self.means],
            "outliers": [o.to_dict() for o in self.outliers],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GcPauseStat":
        """Create stat from dictionary format."""
        return cls(
            type=LogType.parse(data["type"]),
            count=int(data["count"]),
            total_pause_time=float(data["total_pause_time"]),
            sample_mean=float(data["sample_mean"]),
            sample_std_dev=float(data["sample_std_dev"]),
            sample_median=float(data["sample_median"]),
            min_event=_event_or_none(data.get("min_event")),
            max_event=_event_or_none(data.get("max_event")),
            means=[GcEstimatedPauseTime.from_dict(m) for m in data.get("means", [])],
            outliers=[GcPauseOutliers.from_dict(o) for o in data.get("outliers", [])],
        )


@dataclass
class GcConcurrentStat:
    """Number of CMS concurrent events sharing one type detail."""

    type_detail: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"type_detail": self.type_detail, "count": self.count}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GcConcurrentStat":
        return cls(type_detail=data["type_detail"], count=int(data["count"]))


@dataclass
class GcAnalyzedData:
    """Final analysis artifact for one ticket."""

    pauses: list[GcPauseStat] = field(default_factory=list)
    concurrences: list[GcConcurrentStat] = field(default_factory=list)

    def pause_stat(self, log_type: LogType) -> GcPauseStat | None:
        """Return the stat for a pausing category, or None if not present."""
        for stat in self.pauses:
            if stat.type == log_type:
                return stat
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pauses": [p.to_dict() for p in self.pauses],
            "concurrences": [c.to_dict() for c in self.concurrences],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GcAnalyzedData":
        return cls(
            pauses=[GcPauseStat.from_dict(p) for p in data.get("pauses", [])],
            concurrences=[
                GcConcurrentStat.from_dict(c) for c in data.get("concurrences", [])
            ],
        )


@dataclass
class FileMetadata:
    """
    Information about an uploaded log file.

    Written when the file info is received and updated when the upload
    completes or the analysis fails.
    """

    ticket: int
    filename: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    size: int | None = None  # Bytes received, None until upload completes
    message: str | None = None  # Failure reason for ERROR tickets

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket": self.ticket,
            "filename": self.filename,
            "created_at": self.created_at.isoformat(),
            "size": self.size,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileMetadata":
        return cls(
            ticket=int(data["ticket"]),
            filename=data["filename"],
            created_at=datetime.fromisoformat(data["created_at"]),
            size=data.get("size"),
            message=data.get("message"),
        )


@dataclass
class FileInfoResult:
    """Response to a file info upload."""

    successful: bool
    id: int = 0  # The issued ticket, 0 when unsuccessful

    def to_dict(self) -> dict[str, Any]:
        return {"successful": self.successful, "id": self.id}


@dataclass
class UploadRequest:
    """One chunk of a streamed log upload."""

    id: int  # Ticket the chunk belongs to
    contents: bytes


@dataclass
class UploadResult:
    """Response to a streamed log upload."""

    successful: bool
    filesize: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"successful": self.successful, "filesize": self.filesize}


@dataclass
class AnalyzedResult:
    """Response to an analysis query."""

    status: JobStatus
    result_data: GcAnalyzedData | None = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.encode(),
            "result_data": self.result_data.to_dict()
            if self.result_data is not None
            else None,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalyzedResult":
        result_data = data.get("result_data")
        return cls(
            status=JobStatus.decode(data["status"]),
            result_data=GcAnalyzedData.from_dict(result_data) if result_data else None,
            message=data.get("message", ""),
        )
