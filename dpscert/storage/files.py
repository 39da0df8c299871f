from pathlib import Path

from dpscert.common.errors import FileNotFound, InvalidPath


def _as_path(path) -> Path:
    if path is None or not str(path).strip() or "\x00" in str(path):
        raise InvalidPath(f"{path!r} must be a valid filename.")
    return Path(path)


def read_bytes(path) -> bytes:
    p = _as_path(path)
    if not p.exists():
        raise FileNotFound(f"{p} does not exist. Cannot load certificate from non-existing file.")
    if not p.is_file():
        raise InvalidPath(f"{p} is not a file.")
    return p.read_bytes()


def write_bytes(path, data: bytes) -> Path:
    p = _as_path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("wb") as f:
        f.write(data)
    return p
