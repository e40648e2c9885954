"""File system service for cache persistence and file management."""

import json
import shutil
from pathlib import Path
from typing import Any

import structlog

log = structlog.stdlib.get_logger()


class FileSystemService:
    """Service for file system operations with logging and atomic writes."""

    def save_json(self, data: dict[str, Any], path: Path) -> None:
        """Save data as pretty-printed JSON to the specified path.

        The data is written to a temporary sibling first and then moved
        into place, so readers never observe a partially written file.

        Args:
            data: Dictionary to save as JSON
            path: Path to save the file

        Raises:
            OSError: If file cannot be written
            ValueError: If data cannot be serialized to JSON
        """
        self.ensure_directory(path.parent)
        temp_path = path.with_suffix(path.suffix + ".tmp")

        try:
            log.debug("Saving JSON data", path=str(path), temp_path=str(temp_path))

            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False, sort_keys=True)

            temp_path.replace(path)

            log.debug("JSON data saved", path=str(path), size=path.stat().st_size)

        except OSError as e:
            log.error("Failed to save JSON data", path=str(path), error=str(e))
            temp_path.unlink(missing_ok=True)
            raise
        except (TypeError, ValueError) as e:
            log.error("Failed to serialize data to JSON", path=str(path), error=str(e))
            temp_path.unlink(missing_ok=True)
            raise ValueError(f"Cannot serialize data to JSON: {e}") from e

    def load_json(self, path: Path) -> dict[str, Any]:
        """Load a JSON object from the specified path.

        Args:
            path: Path to load the file from

        Returns:
            Dictionary loaded from JSON

        Raises:
            FileNotFoundError: If file does not exist
            OSError: If file cannot be read
            ValueError: If file contains invalid JSON or is not an object
        """
        log.debug("Loading JSON data", path=str(path))

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            log.error("Invalid JSON in file", path=str(path), error=str(e))
            raise ValueError(f"Invalid JSON in file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(f"Expected JSON object (dict), got {type(data).__name__}")

        return data

    def ensure_directory(self, path: Path) -> None:
        """Ensure that a directory exists, creating it if necessary.

        Raises:
            OSError: If directory cannot be created or path is a file
        """
        if path.exists():
            if not path.is_dir():
                log.error("Path exists but is not a directory", path=str(path))
                raise OSError(f"Path exists but is not a directory: {path}")
            return

        try:
            path.mkdir(parents=True, exist_ok=True)
            log.debug("Directory created", path=str(path))
        except OSError as e:
            log.error("Failed to create directory", path=str(path), error=str(e))
            raise

    def write_bytes(self, data: bytes, path: Path) -> None:
        """Write binary content, creating parent directories.

        Raises:
            OSError: If the file cannot be written
        """
        self.ensure_directory(path.parent)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_bytes(data)
            temp_path.replace(path)
            log.debug("Binary data saved", path=str(path), size=len(data))
        except OSError as e:
            log.error("Failed to write file", path=str(path), error=str(e))
            temp_path.unlink(missing_ok=True)
            raise

    def copy_file(self, source: Path, destination: Path) -> None:
        """Copy a file, creating the destination directory.

        Raises:
            FileNotFoundError: If source file does not exist
            OSError: If file cannot be copied
        """
        if not source.is_file():
            log.error("Source file not found for copy", source=str(source))
            raise FileNotFoundError(f"Source file not found: {source}")

        self.ensure_directory(destination.parent)
        try:
            shutil.copy2(source, destination)
            log.debug("File copied", source=str(source), destination=str(destination))
        except OSError as e:
            log.error("Failed to copy file", source=str(source), destination=str(destination), error=str(e))
            raise

    def get_available_space(self, path: Path) -> int:
        """Get available disk space for the given path.

        Walks up to the nearest existing ancestor when the path does not
        exist yet.

        Raises:
            OSError: If disk space cannot be determined
        """
        check_path = path
        while not check_path.exists() and check_path != check_path.parent:
            check_path = check_path.parent

        available_space = shutil.disk_usage(check_path).free
        log.debug(
            "Retrieved disk space information",
            path=str(path),
            check_path=str(check_path),
            available_mb=available_space // (1024 * 1024),
        )
        return available_space

    def delete_file(self, path: Path) -> None:
        """Delete a file.

        Raises:
            FileNotFoundError: If file does not exist
            OSError: If file cannot be deleted
        """
        if not path.is_file():
            log.warning("Attempted to delete non-existent file", path=str(path))
            raise FileNotFoundError(f"File not found: {path}")

        path.unlink()
        log.debug("File deleted", path=str(path))

    def delete_tree(self, path: Path) -> None:
        """Recursively delete a directory.

        Raises:
            FileNotFoundError: If the directory does not exist
            OSError: If the directory cannot be removed
        """
        if not path.is_dir():
            raise FileNotFoundError(f"Directory not found: {path}")

        shutil.rmtree(path)
        log.info("Directory removed", path=str(path))

    def list_files(self, directory: Path, pattern: str = "*", recursive: bool = False) -> list[Path]:
        """List files in a directory matching a pattern, sorted by path.

        Raises:
            FileNotFoundError: If directory does not exist
            OSError: If directory cannot be accessed
        """
        if not directory.is_dir():
            log.error("Directory not found for listing", directory=str(directory))
            raise FileNotFoundError(f"Directory not found: {directory}")

        files = directory.rglob(pattern) if recursive else directory.glob(pattern)
        file_paths = sorted(f for f in files if f.is_file())

        log.debug(
            "Listed files in directory",
            directory=str(directory),
            pattern=pattern,
            recursive=recursive,
            count=len(file_paths),
        )
        return file_paths
