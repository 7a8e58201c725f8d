# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Project-wide import index for reverse dependency lookup.

The index is built with a lexical pass over every source file (regular
expressions, no parsing), which keeps a full project scan cheap. Files are
discovered breadth-first and processed on a bounded thread pool; the result
maps are assembled only after every per-file unit has finished.
"""

import fnmatch
import logging
import os
import re
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from class_relations.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_EXTENSIONS,
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_MAX_FILES,
    Config,
)
from class_relations.errors import ProjectNotFoundError
from class_relations.models import ImportIndex
from class_relations.path_resolver import PathResolver

logger = logging.getLogger(__name__)

# (current, total, message); total is always 100
ProgressCallback = Callable[[int, int, str], None]

_PROGRESS_TOTAL = 100
_PROGRESS_SCANNED = 20
_PROGRESS_PROCESSED = 90
_PROGRESS_EVERY_N_FILES = 100

_IMPORT_PATTERNS = [
    # import X from '...', import { A } from '...', import * as ns from '...',
    # import type { T } from '...', import '...'
    re.compile(
        r"import\s+(?:type\s+)?"
        r"(?:(?:\{[^}]*\}|\*\s+as\s+\w+|\w+)"
        r"(?:\s*,\s*(?:\{[^}]*\}|\*\s+as\s+\w+|\w+))*\s+from\s+)?"
        r"['\"]([^'\"]+)['\"]"
    ),
    # import('...')
    re.compile(r"import\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    # require('...')
    re.compile(r"require\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    # export { A } from '...', export * from '...', export * as ns from '...'
    re.compile(
        r"export\s+(?:type\s+)?(?:\*(?:\s+as\s+\w+)?|\{[^}]*\})\s+from\s+['\"]([^'\"]+)['\"]"
    ),
]


@dataclass
class ImportIndexOptions:
    """Options for ImportIndexBuilder.build_index."""

    ignore_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    max_files: int = DEFAULT_MAX_FILES
    concurrency: int = DEFAULT_CONCURRENCY

    @classmethod
    def from_config(cls, config: Config) -> "ImportIndexOptions":
        return cls(
            ignore_patterns=list(config.ignore_patterns),
            extensions=list(config.extensions),
            max_files=config.max_files,
            concurrency=config.concurrency,
        )


def extract_import_specifiers(code: str) -> List[str]:
    """Extract module specifiers from source text, first occurrence order per pattern.

    Covers ES imports (default, named, namespace, type-only, side-effect),
    dynamic import(), require() and export-from re-exports. Duplicates are
    dropped.
    """
    seen: Dict[str, None] = {}
    for pattern in _IMPORT_PATTERNS:
        for match in pattern.finditer(code):
            seen.setdefault(match.group(1), None)
    return list(seen)


class ImportIndexBuilder:
    """Builds an ImportIndex for a project tree.

    Usage:
        builder = ImportIndexBuilder("/path/to/project")
        index = builder.build_index()
        importers = index.importers_of("/path/to/project/src/Engine.ts")
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        options: Optional[ImportIndexOptions] = None,
        path_resolver: Optional[PathResolver] = None,
    ):
        """Initialize the builder.

        Args:
            project_root: Root directory to scan.
            options: Scan options (defaults when None).
            path_resolver: Resolver for relative specifiers; one bound to
                ``project_root`` and the option extensions is created when None.
        """
        self.project_root = os.path.abspath(str(project_root))
        self.options = options or ImportIndexOptions()
        self.path_resolver = path_resolver or PathResolver(
            self.project_root, self.options.extensions
        )

    def build_index(self, on_progress: Optional[ProgressCallback] = None) -> ImportIndex:
        """Scan the project and build forward and reverse import maps.

        Args:
            on_progress: Optional callback receiving (current, total, message).

        Returns:
            ImportIndex with file_to_imports and import_to_files maps.

        Raises:
            ProjectNotFoundError: If the project root does not exist.
        """
        if not os.path.isdir(self.project_root):
            raise ProjectNotFoundError(self.project_root)

        start_time = time.time()
        self._report(on_progress, 0, "Scanning project files...")
        files = self.scan_project_files()
        self._report(on_progress, _PROGRESS_SCANNED, f"Found {len(files)} files")

        per_file = self._process_files(files, on_progress)
        self._report(on_progress, _PROGRESS_PROCESSED, "Building import index...")

        file_to_imports: Dict[str, List[str]] = {}
        import_to_files: Dict[str, List[str]] = {}

        # Assemble in scan order so the maps do not depend on thread scheduling
        for file_path in files:
            resolved = per_file.get(file_path)
            if resolved is None:
                continue
            file_to_imports[file_path] = resolved
            for target in resolved:
                importers = import_to_files.setdefault(target, [])
                if file_path not in importers:
                    importers.append(file_path)

        self._report(on_progress, _PROGRESS_TOTAL, "Import index built successfully")

        elapsed = time.time() - start_time
        logger.info(
            f"Import index built for {self.project_root}: {len(files)} files, "
            f"{sum(len(v) for v in file_to_imports.values())} resolved imports "
            f"in {elapsed:.2f}s",
            extra={"extra_fields": {"files": len(files), "elapsed_seconds": round(elapsed, 3)}},
        )

        return ImportIndex(
            file_to_imports=file_to_imports,
            import_to_files=import_to_files,
            timestamp=time.time(),
            file_count=len(files),
        )

    def scan_project_files(self) -> List[str]:
        """Collect source files breadth-first, truncated to max_files.

        Directories of one level are listed in parallel; entries are sorted by
        name so the file list (and the truncation point) is deterministic.
        """
        max_files = self.options.max_files
        files: List[str] = []
        level = [self.project_root]

        with ThreadPoolExecutor(max_workers=self.options.concurrency) as executor:
            while level and len(files) < max_files:
                next_level: List[str] = []
                for dirs, found in executor.map(self._scan_directory, level):
                    next_level.extend(dirs)
                    files.extend(found)
                    if len(files) >= max_files:
                        break
                level = next_level

        return files[:max_files]

    def should_ignore(self, path: str) -> bool:
        """Check a path against the ignore patterns.

        Patterns without wildcards match whole path components; wildcard
        patterns are matched against the relative path, the name and each
        component.
        """
        rel_path = os.path.relpath(path, self.project_root)
        parts = Path(rel_path).parts
        name = os.path.basename(path)

        for pattern in self.options.ignore_patterns:
            if "*" in pattern or "?" in pattern or "[" in pattern:
                if fnmatch.fnmatch(rel_path, pattern) or fnmatch.fnmatch(name, pattern):
                    return True
                if any(fnmatch.fnmatch(part, pattern) for part in parts):
                    return True
            elif pattern in parts:
                return True
        return False

    def _scan_directory(self, dir_path: str) -> Tuple[List[str], List[str]]:
        dirs: List[str] = []
        files: List[str] = []
        try:
            with os.scandir(dir_path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning(f"Failed to scan directory {dir_path}: {e}")
            return dirs, files

        for entry in entries:
            full_path = os.path.join(dir_path, entry.name)
            if self.should_ignore(full_path):
                continue
            try:
                if entry.is_dir():
                    dirs.append(full_path)
                elif entry.is_file() and os.path.splitext(entry.name)[1] in self.options.extensions:
                    files.append(full_path)
            except OSError as e:
                logger.warning(f"Failed to stat {full_path}: {e}")
        return dirs, files

    def _process_files(
        self, files: List[str], on_progress: Optional[ProgressCallback]
    ) -> Dict[str, List[str]]:
        results: Dict[str, List[str]] = {}
        total = len(files)
        if total == 0:
            return results

        processed = 0
        with ThreadPoolExecutor(max_workers=self.options.concurrency) as executor:
            futures = {executor.submit(self._extract_resolved_imports, f): f for f in files}
            for future in as_completed(futures):
                file_path = futures[future]
                try:
                    results[file_path] = future.result()
                except (OSError, UnicodeDecodeError, ValueError) as e:
                    logger.warning(
                        f"Skipping {file_path}: failed to process file: {e}",
                        extra={"extra_fields": {"file_path": file_path, "reason": str(e)}},
                    )
                processed += 1
                if processed % _PROGRESS_EVERY_N_FILES == 0 or processed == total:
                    span = _PROGRESS_PROCESSED - _PROGRESS_SCANNED
                    progress = _PROGRESS_SCANNED + (processed * span) // total
                    self._report(on_progress, progress, f"Processing files: {processed}/{total}")

        return results

    def _extract_resolved_imports(self, file_path: str) -> List[str]:
        with open(file_path, encoding="utf-8", errors="replace") as f:
            code = f.read()

        resolved: List[str] = []
        for specifier in extract_import_specifiers(code):
            if not self.path_resolver.is_relative_path(specifier):
                continue
            target = self.path_resolver.resolve(file_path, specifier)
            if target and target not in resolved:
                resolved.append(target)
        return resolved

    @staticmethod
    def _report(on_progress: Optional[ProgressCallback], current: int, message: str) -> None:
        if on_progress is not None:
            on_progress(current, _PROGRESS_TOTAL, message)
