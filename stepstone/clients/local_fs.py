"""Directory-backed object store used for local file storage."""

from __future__ import annotations

from pathlib import Path


class LocalFsStore:
    """Store objects as files below a root directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def connect(self) -> None:
        if not self.root.is_dir():
            raise NotADirectoryError(f"Storage root '{self.root}' is not a directory")

    def list(self, prefix: str = "") -> list[str]:
        base = self._path(prefix) if prefix else self.root
        if not base.exists():
            return []
        if base.is_file():
            return [prefix]
        return sorted(
            str(path.relative_to(self.root)) for path in base.rglob("*") if path.is_file()
        )

    def write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def read(self, key: str) -> bytes:
        return self._path(key).read_bytes()

    def delete(self, key: str) -> None:
        path = self._path(key)
        path.unlink()
        self._prune(path.parent)

    def close(self) -> None:
        return None

    def _path(self, key: str) -> Path:
        relative = Path(key.lstrip("/"))
        if ".." in relative.parts:
            raise ValueError(f"Object key '{key}' escapes the storage root")
        return self.root / relative

    def _prune(self, directory: Path) -> None:
        """Remove empty directories left behind by nested keys."""

        root = self.root.resolve()
        current = directory.resolve()
        while current != root and root in current.parents:
            try:
                current.rmdir()
            except OSError:
                return
            current = current.parent
