# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Resolution of relative module specifiers to project files.

Only path-like specifiers (``./x``, ``../x``) are resolved. Bare package
specifiers and anything that escapes the project root resolve to None,
which callers treat as "unresolvable, skip".
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from class_relations.config import DEFAULT_EXTENSIONS

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class PathResolver:
    """Resolves import specifiers written in one file to absolute file paths.

    Resolution order for ``base = dirname(from_file) / specifier``:
    1. ``base`` itself when it has an extension and is a file
    2. ``base + ext`` for each configured extension
    3. ``base/index + ext`` for each configured extension when ``base`` is a directory

    First match wins.
    """

    def __init__(self, project_root: PathLike, extensions: Optional[List[str]] = None):
        """Initialize the resolver.

        Args:
            project_root: Root directory; resolved paths must stay inside it.
            extensions: Source extensions in priority order.
        """
        self.project_root = os.path.abspath(str(project_root))
        try:
            self._real_project_root = os.path.realpath(self.project_root)
        except OSError:
            self._real_project_root = self.project_root
        self.extensions = list(extensions) if extensions else list(DEFAULT_EXTENSIONS)

    @staticmethod
    def is_relative_path(specifier: str) -> bool:
        """Whether a specifier is relative (resolvable) rather than a bare package name."""
        return specifier.startswith("./") or specifier.startswith("../")

    def resolve(self, from_file: PathLike, specifier: str) -> Optional[str]:
        """Resolve ``specifier`` as written in ``from_file``.

        Args:
            from_file: File containing the import.
            specifier: Module specifier as written, e.g. "../models/User".

        Returns:
            Absolute path of the matching file, or None if the specifier is
            bare, escapes the project, or matches nothing on disk.
        """
        if not specifier or not specifier.strip():
            return None
        if not self.is_relative_path(specifier):
            return None

        from_path = str(from_file)
        if not os.path.isfile(from_path):
            return None

        from_dir = os.path.dirname(os.path.abspath(from_path))
        target = os.path.normpath(os.path.join(from_dir, specifier))
        if not self.is_within_project(target):
            logger.debug(f"Import {specifier!r} in {from_path} escapes project root, skipping")
            return None

        return self._resolve_file(target)

    # Name used by the import index and the service
    resolve_import_path = resolve

    def is_within_project(self, path: PathLike) -> bool:
        """Check that a path lies inside the project root after resolving symlinks.

        For paths that do not exist yet, the longest existing ancestor is
        resolved and the remaining components are appended.
        """
        absolute = os.path.abspath(str(path))
        try:
            real_path = self._real_path_of(absolute)
        except OSError:
            real_path = absolute

        root = self._real_project_root.rstrip(os.sep) + os.sep
        candidate = real_path.rstrip(os.sep) + os.sep
        return candidate.startswith(root)

    def _real_path_of(self, absolute: str) -> str:
        if os.path.exists(absolute):
            return os.path.realpath(absolute)

        missing: List[str] = []
        current = absolute
        while not os.path.exists(current):
            parent = os.path.dirname(current)
            if parent == current:
                return absolute
            missing.insert(0, os.path.basename(current))
            current = parent
        return os.path.join(os.path.realpath(current), *missing)

    def _resolve_file(self, base: str) -> Optional[str]:
        if os.path.splitext(base)[1] and os.path.isfile(base):
            return base

        for ext in self.extensions:
            candidate = base + ext
            if os.path.isfile(candidate):
                return candidate

        if os.path.isdir(base):
            for ext in self.extensions:
                candidate = os.path.join(base, f"index{ext}")
                if os.path.isfile(candidate):
                    return candidate

        return None
