from dataclasses import dataclass
from datetime import datetime
from typing import Literal

NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class Showing:
    movie_title: str
    date: str
    time: str = NOT_AVAILABLE
    cinema_name: str = NOT_AVAILABLE

    def to_dict(self) -> dict:
        # Key order and camelCase names are the snapshot file format
        return {
            "movieTitle": self.movie_title,
            "date": self.date,
            "time": self.time,
            "cinemaName": self.cinema_name,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "Showing":
        return cls(
            movie_title=str(raw.get("movieTitle") or ""),
            date=str(raw.get("date") or ""),
            time=str(raw.get("time") or NOT_AVAILABLE),
            cinema_name=str(raw.get("cinemaName") or NOT_AVAILABLE),
        )


PartKind = Literal["common", "added", "removed"]


@dataclass(frozen=True)
class DiffPart:
    kind: PartKind
    values: tuple[Showing, ...]

    @property
    def changed(self) -> bool:
        return self.kind != "common"

    def to_dict(self) -> dict:
        out: dict = {}
        if self.kind == "added":
            out["added"] = True
        elif self.kind == "removed":
            out["removed"] = True
        out["count"] = len(self.values)
        out["value"] = [s.to_dict() for s in self.values]
        return out


@dataclass(frozen=True)
class BlobInfo:
    key: str
    last_modified: datetime   # timezone-aware, UTC


@dataclass(frozen=True)
class NotifyResult:
    delivered: bool
    detail: str = ""


@dataclass
class RunResult:
    showings_found: int = 0
    snapshot_key: str = ""
    compared: bool = False
    added: int = 0
    removed: int = 0
    diff_key: str = ""
    notified: bool = False
    deleted: int = 0
