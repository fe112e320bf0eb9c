import logging
import re
from typing import Any

from .errors import NormalizationShapeError
from .models import NOT_AVAILABLE, Showing

_SEPARATORS = re.compile(r"[_-]")
_DIGITS = re.compile(r"\d+")
_SPACES = re.compile(r"\s+")
# First letter of the string, or one following whitespace or a hyphen
_WORD_START = re.compile(r"(^|[\s-])(\S)")


def cinema_name(cinema_key: str) -> str:
    """Derive a display name from a schedule key, e.g. ``Milano_Bicocca-1``
    becomes ``Milano Bicocca``. Only word starts are uppercased."""
    name = _SEPARATORS.sub(" ", cinema_key)
    name = _DIGITS.sub("", name)
    name = _SPACES.sub(" ", name).strip()
    name = _WORD_START.sub(lambda m: m.group(1) + m.group(2).upper(), name)
    return name or NOT_AVAILABLE


def _require(value: Any, kind: type, expected: str, path: str) -> Any:
    if not isinstance(value, kind):
        raise NormalizationShapeError(path, expected, value)
    return value


def _text(value: Any, path: str) -> str:
    if value is None or isinstance(value, (dict, list)):
        raise NormalizationShapeError(path, "a scalar", value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize(days: Any) -> list[Showing]:
    """Flatten ``cinema -> [day -> [movie -> [time]]]`` into one Showing per
    movie time, keeping the source order at every level."""
    _require(days, dict, "a mapping of cinemas", "days")
    showings: list[Showing] = []
    for cinema_key, day_events in days.items():
        cinema_path = f"days[{cinema_key!r}]"
        name = cinema_name(str(cinema_key))
        _require(day_events, list, "a list of days", cinema_path)
        for day_idx, day_event in enumerate(day_events):
            day_path = f"{cinema_path}[{day_idx}]"
            _require(day_event, dict, "a day mapping", day_path)
            date = _text(day_event.get("date"), f"{day_path}.date")
            events = _require(day_event.get("events"), list, "a list of movies", f"{day_path}.events")
            for event_idx, event in enumerate(events):
                event_path = f"{day_path}.events[{event_idx}]"
                _require(event, dict, "a movie mapping", event_path)
                title = _text(event.get("movieTitle"), f"{event_path}.movieTitle")
                times = _require(event.get("times"), list, "a list of times", f"{event_path}.times")
                for time_idx, time_info in enumerate(times):
                    _require(time_info, dict, "a time mapping", f"{event_path}.times[{time_idx}]")
                    raw_time = time_info.get("time")
                    # falsy times (null, "", 0, false) read as missing
                    if not isinstance(raw_time, (dict, list)) and not raw_time:
                        time = NOT_AVAILABLE
                    else:
                        time = _text(raw_time, f"{event_path}.times[{time_idx}].time")
                    showings.append(
                        Showing(movie_title=title, date=date, time=time, cinema_name=name)
                    )
    logging.getLogger(__name__).debug(
        "schedule_normalized cinemas=%s showings=%s", len(days), len(showings)
    )
    return showings
