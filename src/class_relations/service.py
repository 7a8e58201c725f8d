# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""CrossFileAnalysisService - traversal engine for cross-file OO analysis.

This module coordinates the analytical components and performs depth-bounded
graph walks over a project's import graph.

Key Responsibilities:
- Parse and structurally analyze files on demand, backed by ParseCache
- Walk imports forward (what a file depends on) breadth-first
- Walk importers backward (what depends on a file) using the ImportIndex
- Merge both directions into a deduplicated BidirectionalResult
- Own the lifetime of the parse cache and the cached ImportIndex
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from class_relations.analyzers.typescript_analyzer import TypeScriptAnalyzer
from class_relations.config import Config
from class_relations.errors import (
    InvalidDepthError,
    ParseFailedError,
    SourceFileNotFoundError,
    SourceParseError,
)
from class_relations.import_index import ImportIndexBuilder, ImportIndexOptions, ProgressCallback
from class_relations.models import (
    AnalysisMode,
    AnalysisStats,
    BidirectionalResult,
    ClassInfo,
    FileAnalysis,
    ImportIndex,
    SkippedFile,
)
from class_relations.parse_cache import ParseCache
from class_relations.path_resolver import PathResolver
from class_relations.relationship_extractor import RelationshipExtractor, dedupe_edges

logger = logging.getLogger(__name__)

MIN_DEPTH = 1
MAX_DEPTH = 3


class CrossFileAnalysisService:
    """Traversal engine for cross-file object-oriented relationship analysis.

    Owned Components:
    - PathResolver: resolves relative import specifiers
    - TypeScriptAnalyzer: reads and parses files into ClassInfo
    - RelationshipExtractor: classifies relationships per file
    - ParseCache: per-file analyses keyed by path, validated by mtime
    - ImportIndexBuilder: builds the project-wide ImportIndex, cached lazily

    Traversal Semantics:
    - Depth must be between 1 and 3; the entry file is depth 0
    - Each file gets the BFS level at which it was first reached
    - A visited set per call prevents revisiting files, which resolves cycles
    - A broken entry file raises ParseFailedError; broken dependency files
      are recorded in ``skipped_files`` and left out of the result

    Validation of depth and file existence happens before any parsing or
    index building. Relative file paths are taken relative to the project root.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        config: Optional[Config] = None,
        analyzer: Optional[TypeScriptAnalyzer] = None,
        extractor: Optional[RelationshipExtractor] = None,
        cache: Optional[ParseCache] = None,
        path_resolver: Optional[PathResolver] = None,
    ):
        """Initialize the service with its dependencies.

        Args:
            project_root: Root directory of the analyzed project.
            config: Configuration (defaults when None; no file is read).
            analyzer: Parser/structural analyzer (created from config if None).
            extractor: Relationship classifier (created if None).
            cache: Parse cache (created from config if None).
            path_resolver: Import resolver (created from config if None).
        """
        self.project_root = os.path.abspath(str(project_root))
        self.config = config or Config.defaults()

        self.path_resolver = path_resolver or PathResolver(
            self.project_root, self.config.extensions
        )
        self.analyzer = analyzer or TypeScriptAnalyzer(max_file_lines=self.config.max_file_lines)
        self.extractor = extractor or RelationshipExtractor()
        self.cache = cache or ParseCache(
            max_entries=self.config.parse_cache_max_entries,
            validate_mtime=self.config.validate_mtime,
        )
        self.index_builder = ImportIndexBuilder(
            self.project_root,
            ImportIndexOptions.from_config(self.config),
            self.path_resolver,
        )

        self._import_index: Optional[ImportIndex] = None
        self._index_lock = threading.Lock()

        # Dependency files left out of the most recent traversal
        self.skipped_files: List[SkippedFile] = []

        logger.info(f"CrossFileAnalysisService initialized for {self.project_root}")

    # Public traversal API

    def analyze_file(self, file_path: Union[str, Path]) -> FileAnalysis:
        """Analyze a single file (depth 0) without following imports.

        Raises:
            SourceFileNotFoundError: If the file does not exist.
            ParseFailedError: If the file cannot be parsed.
        """
        entry = self._validate_file(file_path)
        self.skipped_files = []
        analysis = self._analyze(entry, 0, is_entry=True)
        assert analysis is not None
        return analysis

    def analyze_forward(
        self, file_path: Union[str, Path], depth: int
    ) -> Dict[str, FileAnalysis]:
        """Follow the entry file's relative imports breadth-first.

        Imports are re-read from each file's current content rather than from
        the import index.

        Args:
            file_path: Entry file.
            depth: Maximum BFS level (1-3).

        Returns:
            Map from absolute path to FileAnalysis, always including the entry
            at depth 0.

        Raises:
            InvalidDepthError: If depth is outside 1-3.
            SourceFileNotFoundError: If the entry file does not exist.
            ParseFailedError: If the entry file cannot be parsed.
        """
        self._validate_depth(depth)
        entry = self._validate_file(file_path)
        self.skipped_files = []

        start_time = time.time()
        results = self._walk_forward(entry, depth)
        elapsed = time.time() - start_time
        logger.info(
            f"Forward analysis of {entry} (depth {depth}): {len(results)} files in {elapsed:.2f}s",
            extra={
                "extra_fields": {
                    "mode": AnalysisMode.FORWARD,
                    "entry_file": entry,
                    "depth": depth,
                    "files": len(results),
                    "skipped": len(self.skipped_files),
                }
            },
        )
        return results

    def analyze_reverse(
        self, file_path: Union[str, Path], depth: int
    ) -> Dict[str, FileAnalysis]:
        """Follow importers of the target file breadth-first via the import index.

        Args:
            file_path: Target file.
            depth: Maximum BFS level (1-3).

        Returns:
            Map from absolute path to FileAnalysis, always including the
            target at depth 0.

        Raises:
            InvalidDepthError: If depth is outside 1-3.
            SourceFileNotFoundError: If the target file does not exist.
            ParseFailedError: If the target file cannot be parsed.
        """
        self._validate_depth(depth)
        target = self._validate_file(file_path)
        self.skipped_files = []

        start_time = time.time()
        results = self._walk_reverse(target, depth)
        elapsed = time.time() - start_time
        logger.info(
            f"Reverse analysis of {target} (depth {depth}): {len(results)} files in {elapsed:.2f}s",
            extra={
                "extra_fields": {
                    "mode": AnalysisMode.REVERSE,
                    "entry_file": target,
                    "depth": depth,
                    "files": len(results),
                    "skipped": len(self.skipped_files),
                }
            },
        )
        return results

    def analyze_bidirectional(
        self,
        file_path: Union[str, Path],
        depth: int,
        mode: str = AnalysisMode.BIDIRECTIONAL,
    ) -> BidirectionalResult:
        """Run forward and/or reverse analysis from one file and merge the results.

        Args:
            file_path: Entry file.
            depth: Maximum BFS level (1-3) in each direction.
            mode: "forward", "reverse" or "bidirectional".

        Returns:
            BidirectionalResult; in forward or reverse mode the other
            direction's list is empty.

        Raises:
            InvalidDepthError: If depth is outside 1-3.
            ValueError: If mode is unknown.
            SourceFileNotFoundError: If the file does not exist.
            ParseFailedError: If the file cannot be parsed.
        """
        self._validate_depth(depth)
        if mode not in AnalysisMode.ALL:
            raise ValueError(
                f"Invalid analysis mode {mode!r}, expected one of {', '.join(AnalysisMode.ALL)}"
            )
        entry = self._validate_file(file_path)
        self.skipped_files = []

        start_time = time.time()
        forward: Dict[str, FileAnalysis] = {}
        reverse: Dict[str, FileAnalysis] = {}
        if mode in (AnalysisMode.FORWARD, AnalysisMode.BIDIRECTIONAL):
            forward = self._walk_forward(entry, depth)
        if mode in (AnalysisMode.REVERSE, AnalysisMode.BIDIRECTIONAL):
            reverse = self._walk_reverse(entry, depth)

        result = self._merge(entry, forward, reverse, mode)
        logger.info(
            f"{mode.capitalize()} analysis of {entry} (depth {depth}): "
            f"{result.stats.total_files} files, {result.stats.total_classes} classes, "
            f"{result.stats.total_relationships} relationships "
            f"in {time.time() - start_time:.2f}s",
            extra={
                "extra_fields": {
                    "mode": mode,
                    "entry_file": entry,
                    "depth": depth,
                    "files": result.stats.total_files,
                    "classes": result.stats.total_classes,
                    "relationships": result.stats.total_relationships,
                    "skipped": len(self.skipped_files),
                }
            },
        )
        return result

    # Cache and index management

    def get_analyzed_files(self) -> Set[str]:
        """Absolute paths currently held in the parse cache."""
        return set(self.cache.cached_files())

    def clear_cache(self) -> None:
        """Drop the parse cache and the cached import index."""
        self.cache.clear()
        with self._index_lock:
            self._import_index = None
        logger.info("Analysis caches cleared")

    def get_import_index(self, force_rebuild: bool = False) -> ImportIndex:
        """Return the cached import index, building it on first use.

        Raises:
            ProjectNotFoundError: If the project root does not exist.
        """
        with self._index_lock:
            if self._import_index is None or force_rebuild:
                self._import_index = self.index_builder.build_index()
            return self._import_index

    def build_index(self, on_progress: Optional[ProgressCallback] = None) -> ImportIndex:
        """Rebuild the import index from disk and cache it.

        Args:
            on_progress: Optional callback receiving (current, total, message).

        Raises:
            ProjectNotFoundError: If the project root does not exist.
        """
        with self._index_lock:
            self._import_index = self.index_builder.build_index(on_progress)
            return self._import_index

    def get_cache_statistics(self) -> Dict[str, Any]:
        """Parse cache statistics plus import index state."""
        stats = self.cache.get_statistics()
        index = self._import_index
        stats["import_index_built"] = index is not None
        stats["import_index_file_count"] = index.file_count if index is not None else 0
        return stats

    # Traversal internals

    def _walk_forward(self, entry: str, depth: int) -> Dict[str, FileAnalysis]:
        entry_analysis = self._analyze(entry, 0, is_entry=True)
        assert entry_analysis is not None
        results: Dict[str, FileAnalysis] = {entry: entry_analysis}
        visited = {entry}
        frontier = [entry_analysis]

        for level in range(1, depth + 1):
            next_frontier: List[FileAnalysis] = []
            for analysis in frontier:
                for target in analysis.resolved_imports():
                    if target in visited:
                        continue
                    visited.add(target)
                    dependency = self._analyze(target, level, is_entry=False)
                    if dependency is None:
                        continue
                    results[target] = dependency
                    next_frontier.append(dependency)
            if not next_frontier:
                break
            frontier = next_frontier

        return results

    def _walk_reverse(self, target: str, depth: int) -> Dict[str, FileAnalysis]:
        target_analysis = self._analyze(target, 0, is_entry=True)
        assert target_analysis is not None
        index = self.get_import_index()

        results: Dict[str, FileAnalysis] = {target: target_analysis}
        visited = {target}
        frontier = [target]

        for level in range(1, depth + 1):
            next_frontier: List[str] = []
            for path in frontier:
                for importer in index.importers_of(path):
                    if importer in visited:
                        continue
                    visited.add(importer)
                    # Importers are known from the index, so a skipped file
                    # still leads on to its own importers
                    next_frontier.append(importer)
                    analysis = self._analyze(importer, level, is_entry=False)
                    if analysis is not None:
                        results[importer] = analysis
            if not next_frontier:
                break
            frontier = next_frontier

        return results

    def _analyze(self, path: str, depth: int, is_entry: bool) -> Optional[FileAnalysis]:
        """Analysis of one file at a traversal depth.

        Returns None for a dependency file that has to be skipped.

        Raises:
            ParseFailedError: If the entry file cannot be parsed.
        """
        if not is_entry:
            reason = self._skip_reason(path)
            if reason is not None:
                self._record_skip(path, reason, depth)
                return None

        cached = self.cache.get(path)
        if cached is None:
            try:
                cached = self._parse_and_extract(path)
            except SourceParseError as e:
                if is_entry:
                    raise ParseFailedError(path, e.detail) from e
                self._record_skip(path, e.detail, depth)
                return None

        return cached.with_depth(depth)

    def _parse_and_extract(self, path: str) -> FileAnalysis:
        try:
            file_mtime: Optional[float] = os.path.getmtime(path)
        except OSError as e:
            raise SourceParseError(path, f"cannot stat file: {e}") from e

        parsed = self.analyzer.parse(path)
        classes = self.analyzer.extract_classes(parsed)
        imports = [
            record.with_resolved_path(self.path_resolver.resolve(path, record.source))
            for record in self.extractor.extract_imports(parsed)
        ]
        exports = [
            record.with_resolved_path(self.path_resolver.resolve(path, record.source))
            if record.is_re_export and record.source
            else record
            for record in self.extractor.extract_exports(parsed)
        ]
        oo_result = self.extractor.analyze(classes, imports)

        analysis = FileAnalysis(
            file_path=path,
            depth=0,
            classes=classes,
            imports=imports,
            exports=exports,
            relationships=oo_result.relationships,
        )
        self.cache.set(path, analysis, file_mtime)
        return analysis

    def _skip_reason(self, path: str) -> Optional[str]:
        if os.path.splitext(path)[1] not in self.config.extensions:
            return "unsupported file type"
        if self.index_builder.should_ignore(path):
            return "matches ignore pattern"
        return None

    def _record_skip(self, path: str, reason: str, depth: int) -> None:
        logger.warning(
            f"Skipping {path}: {reason}",
            extra={"extra_fields": {"file_path": path, "reason": reason, "depth": depth}},
        )
        self.skipped_files.append(SkippedFile(file_path=path, reason=reason, depth=depth))

    def _merge(
        self,
        entry: str,
        forward: Dict[str, FileAnalysis],
        reverse: Dict[str, FileAnalysis],
        mode: str,
    ) -> BidirectionalResult:
        entry_analysis = forward.get(entry) or reverse.get(entry)
        assert entry_analysis is not None
        forward_deps = [a for path, a in forward.items() if path != entry]
        reverse_deps = [a for path, a in reverse.items() if path != entry]
        visited = [entry_analysis] + forward_deps + reverse_deps

        # Class identity is the name alone
        classes_by_name: Dict[str, ClassInfo] = {}
        for analysis in visited:
            for cls in analysis.classes:
                classes_by_name.setdefault(cls.name, cls)

        relationships = dedupe_edges([edge for a in visited for edge in a.relationships])
        all_classes = list(classes_by_name.values())

        return BidirectionalResult(
            target_file=entry,
            mode=mode,
            forward_deps=forward_deps,
            reverse_deps=reverse_deps,
            all_classes=all_classes,
            relationships=relationships,
            stats=AnalysisStats(
                total_files=len(forward_deps) + len(reverse_deps) + 1,
                total_classes=len(all_classes),
                total_relationships=len(relationships),
                max_depth=max(a.depth for a in visited),
            ),
        )

    # Validation

    @staticmethod
    def _validate_depth(depth: Any) -> None:
        if isinstance(depth, bool) or not isinstance(depth, int):
            raise InvalidDepthError(depth)
        if not MIN_DEPTH <= depth <= MAX_DEPTH:
            raise InvalidDepthError(depth)

    def _validate_file(self, file_path: Union[str, Path]) -> str:
        path = str(file_path)
        if not os.path.isabs(path):
            path = os.path.join(self.project_root, path)
        path = os.path.normpath(path)
        if not os.path.isfile(path):
            raise SourceFileNotFoundError(path)
        return path
