"""Filesystem Gateway - Infrastructure implementation of FileSystemProtocol."""

import fnmatch
from pathlib import Path

from flakiness_linter.domain.constants import SOURCE_EXTENSIONS
from flakiness_linter.domain.protocols import FileSystemProtocol


class FileSystemGateway(FileSystemProtocol):
    """Infrastructure implementation of FileSystemProtocol using pathlib."""

    def resolve_path(self, path: str) -> str:
        """Resolve and normalize a path string."""
        return str(Path(path).resolve())

    def is_directory(self, path: str) -> bool:
        """Check if path is a directory."""
        return Path(path).is_dir()

    def glob_source_files(self, path: str, excludes: tuple[str, ...] = ()) -> list[str]:
        """
        Get all JavaScript/TypeScript files in path (recursive if directory).

        An exclude matches a path component (`node_modules`) or a glob over the
        forward-slash path (`**/fixtures/*`). An explicitly named file is always returned.
        """
        path_obj = Path(path)
        if not path_obj.is_dir():
            return [str(path_obj)] if path_obj.suffix.lower() in SOURCE_EXTENSIONS else []
        found = []
        for candidate in sorted(path_obj.rglob("*")):
            if candidate.suffix.lower() not in SOURCE_EXTENSIONS or not candidate.is_file():
                continue
            relative = candidate.relative_to(path_obj)
            if self._excluded(relative, excludes):
                continue
            found.append(str(candidate))
        return found

    @staticmethod
    def _excluded(relative: Path, excludes: tuple[str, ...]) -> bool:
        posix = relative.as_posix()
        for pattern in excludes:
            if pattern in relative.parts[:-1] or fnmatch.fnmatch(posix, pattern):
                return True
        return False

    def relative_path(self, path: str, root: str) -> str:
        try:
            return Path(path).resolve().relative_to(Path(root).resolve()).as_posix()
        except ValueError:
            return Path(path).as_posix()

    def read_bytes(self, path: str) -> bytes:
        """Read raw file content."""
        return Path(path).read_bytes()

    def write_bytes(self, path: str, content: bytes) -> None:
        """Write raw file content."""
        Path(path).write_bytes(content)
