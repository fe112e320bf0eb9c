class WatchError(Exception):
    """Base class for every failure that aborts a watch run."""


class FetchError(WatchError):
    pass


class ExtractionMiss(WatchError):
    """The schedule block markers were not found in the page scripts."""

    def __init__(self, start_marker: str, end_marker: str) -> None:
        super().__init__(
            f"schedule block not found between {start_marker!r} and {end_marker!r}"
        )
        self.start_marker = start_marker
        self.end_marker = end_marker


class InterpreterError(WatchError):
    pass


class InterpreterSyntaxError(InterpreterError):
    def __init__(self, message: str, line: int = 0, column: int = 0) -> None:
        if line:
            message = f"{message} at line {line} column {column}"
        super().__init__(message)
        self.line = line
        self.column = column


class InterpreterMissingBinding(InterpreterError):
    def __init__(self, names: list[str]) -> None:
        super().__init__("expected names not bound: " + ", ".join(names))
        self.names = names


class NormalizationShapeError(WatchError):
    def __init__(self, path: str, expected: str, got: object) -> None:
        super().__init__(f"{path}: expected {expected}, got {type(got).__name__}")
        self.path = path


class StorageError(WatchError):
    pass
