"""Mapping of source paths onto the destination tree."""

from pathlib import Path

from codeport.core.errors import InvalidPathError
from codeport.utils.logging import get_logger

logger = get_logger(__name__)


class PathMirror:
    """Maps source files to destination files with the target extension.

    The relative position of a file under the source root is kept. When the
    source root is a single file, it is mirrored directly into the destination
    root.
    """

    def __init__(
        self,
        source_root: Path,
        destination_root: Path,
        target_extension: str,
    ) -> None:
        """Initialize the mirror.

        Args:
            source_root: Source file or directory
            destination_root: Directory receiving translated files
            target_extension: Suffix of translated files, including the dot
        """
        self.source_root = Path(source_root).absolute()
        self.destination_root = Path(destination_root).absolute()
        self.target_extension = target_extension
        self.base = self.source_root.parent if self.source_root.is_file() else self.source_root

    def relative_path(self, source_path: Path) -> Path:
        """Get the path of a source file relative to the mirror base.

        Raises:
            InvalidPathError: If the file lies outside the source root,
                including through a symlink
        """
        source_path = Path(source_path).absolute()
        resolved = source_path.resolve()
        resolved_base = self.base.resolve()

        if not resolved.is_relative_to(resolved_base):
            raise InvalidPathError(
                f"{source_path} resolves to {resolved}, outside of {resolved_base}",
                path=source_path,
            )

        try:
            return source_path.relative_to(self.base)
        except ValueError:
            raise InvalidPathError(
                f"{source_path} is not under {self.base}", path=source_path
            ) from None

    def destination_for(self, source_path: Path) -> Path:
        """Map a source file to its destination file.

        Mapping does not touch the destination tree.

        Args:
            source_path: A discovered source file

        Returns:
            Destination path under the destination root

        Raises:
            InvalidPathError: If the file lies outside the source root
        """
        relative = self.relative_path(source_path)
        return (self.destination_root / relative).with_suffix(self.target_extension)

    def ensure_parent(self, destination: Path) -> Path:
        """Create the parent directories of a destination file.

        Returns:
            The parent directory
        """
        parent = destination.parent
        if not parent.is_dir():
            logger.debug("Creating destination directory", directory=str(parent))
            parent.mkdir(parents=True, exist_ok=True)
        return parent
