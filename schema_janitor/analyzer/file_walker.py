"""Source file discovery across the server and client projects."""
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Union

from .models import FileArea


class FileWalker:
    """Collect candidate source files under the configured search roots."""

    SERVER_DIRS = ('src', 'routes', 'services', 'controllers', 'middleware',
                   'utils', 'lib', 'types', 'prisma')

    CLIENT_DIRS = ('src', 'app', 'components', 'hooks', 'utils', 'types', 'store')

    EXTENSIONS = ('.js', '.ts', '.jsx', '.tsx', '.json', '.sql')

    # Build output, dependencies and native shells
    EXCLUDED_DIRS = {
        'node_modules',
        '.git',
        'dist', 'build', 'web-build',
        'coverage',
        '.next', '.expo',
        'public',
        'android', 'ios',
        '.vscode',
    }

    def __init__(self, server_root: Union[str, Path], client_root: Optional[Union[str, Path]] = None,
                 server_dirs: Optional[Sequence[str]] = None,
                 client_dirs: Optional[Sequence[str]] = None,
                 extensions: Optional[Iterable[str]] = None,
                 excluded_dirs: Optional[Iterable[str]] = None):
        """Initialize walker.

        Args:
            server_root: Server project root
            client_root: Client project root (optional)
            server_dirs: Sub-directories of the server root to scan
            client_dirs: Sub-directories of the client root to scan
            extensions: File suffixes to keep
            excluded_dirs: Directory names never descended into
        """
        self.server_root = Path(server_root).resolve()
        self.client_root = Path(client_root).resolve() if client_root else None
        self.server_dirs = tuple(server_dirs) if server_dirs is not None else self.SERVER_DIRS
        self.client_dirs = tuple(client_dirs) if client_dirs is not None else self.CLIENT_DIRS
        self.extensions = tuple(extensions) if extensions is not None else self.EXTENSIONS
        self.excluded_dirs = set(excluded_dirs) if excluded_dirs is not None else set(self.EXCLUDED_DIRS)

    @property
    def search_roots(self) -> List[Path]:
        """Existing search directories, server first."""
        roots = [self.server_root / d for d in self.server_dirs]
        if self.client_root is not None:
            roots.extend(self.client_root / d for d in self.client_dirs)
        return [r for r in roots if r.is_dir()]

    @property
    def client_roots(self) -> List[Path]:
        """Path prefixes that mark a file as client-area."""
        return [self.client_root] if self.client_root is not None else []

    def discover(self) -> List[Path]:
        """Walk every search root and return matching files.

        Returns:
            Absolute paths, sorted within each root, without duplicates
        """
        seen: Set[Path] = set()
        files: List[Path] = []

        for root in self.search_roots:
            for file_path in sorted(self._walk(root)):
                if file_path not in seen:
                    seen.add(file_path)
                    files.append(file_path)

        return files

    def _walk(self, root: Path) -> Iterable[Path]:
        # os.walk's onerror default skips unreadable directories
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if d not in self.excluded_dirs]
            for filename in filenames:
                if filename.endswith(self.extensions):
                    yield Path(dirpath) / filename

    def area_of(self, file_path: Union[str, Path]) -> FileArea:
        """Classify a path as server or client by root prefix."""
        return area_for(file_path, self.client_roots)


def area_for(file_path: Union[str, Path], client_roots: Sequence[Path]) -> FileArea:
    """Classify a path as client-area if it lives under any client root."""
    path = Path(file_path).resolve()
    for root in client_roots:
        if path.is_relative_to(root):
            return FileArea.CLIENT
    return FileArea.SERVER
