# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for cross-file object-oriented relationship analysis.

This module defines the data structures shared by the parser, the
relationship extractor, the import index and the traversal service:
- ImportRecord / ExportRecord: per-file module boundary records
- ParameterInfo / PropertyInfo / MethodInfo / ClassInfo: structural model
- ResolvedTypeInfo: classification of a declared type string
- RelationshipEdge / RelationshipKind: classified OO relationships
- FileAnalysis: per-file traversal result
- ImportIndex: project-wide forward/reverse import maps
- BidirectionalResult / AnalysisStats: merged traversal output
- SkippedFile: non-fatal record for dependency files that were skipped

All models use JSON-compatible primitives for serialization (DD-4), so the
diagram renderer receives plain dicts via to_dict().
"""

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple


class RelationshipKind:
    """Kinds of relationships between types.

    Design: Using class constants (not Enum) for JSON-compatible strings (DD-4).
    The set is closed; each kind has exactly one classification function in
    RelationshipExtractor.
    """

    INHERITANCE = "inheritance"  # class Car extends Vehicle
    REALIZATION = "realization"  # class Car implements Drivable
    COMPOSITION = "composition"  # private engine: Engine
    AGGREGATION = "aggregation"  # public wheels: Wheel[]
    ASSOCIATION = "association"  # public driver: Driver
    DEPENDENCY = "dependency"  # method parameter or return type
    INJECTION = "injection"  # constructor(private logger: Logger)

    ALL = (
        INHERITANCE,
        REALIZATION,
        COMPOSITION,
        AGGREGATION,
        ASSOCIATION,
        DEPENDENCY,
        INJECTION,
    )


class ClassKind:
    """Kinds of type declarations recorded as ClassInfo."""

    CLASS = "class"
    INTERFACE = "interface"


class Visibility:
    """Member visibility modifiers."""

    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"


class ExportType:
    """Kinds of exported declarations."""

    CLASS = "class"
    FUNCTION = "function"
    CONST = "const"
    VARIABLE = "variable"
    INTERFACE = "interface"
    TYPE = "type"
    ENUM = "enum"
    NAMESPACE = "namespace"
    EXPRESSION = "expression"  # export default <expression>
    UNKNOWN = "unknown"  # export lists and re-exports


class AnalysisMode:
    """Traversal directions accepted by analyze_bidirectional."""

    FORWARD = "forward"
    REVERSE = "reverse"
    BIDIRECTIONAL = "bidirectional"

    ALL = (FORWARD, REVERSE, BIDIRECTIONAL)


@dataclass(frozen=True)
class ImportRecord:
    """A single import, require() or dynamic import() in a file."""

    source: str  # Specifier as written, e.g. "./Engine"
    specifiers: Tuple[str, ...] = ()  # Local bindings
    is_default: bool = False
    is_namespace: bool = False
    namespace_alias: Optional[str] = None
    is_dynamic: bool = False  # import() or require()
    is_type_only: bool = False  # import type { X } from ...
    line_number: int = 0
    resolved_path: Optional[str] = None  # Absolute path, None if bare or unresolved

    def with_resolved_path(self, resolved_path: Optional[str]) -> "ImportRecord":
        """Return a copy carrying the resolved absolute path."""
        return replace(self, resolved_path=resolved_path)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "source": self.source,
            "specifiers": list(self.specifiers),
            "is_default": self.is_default,
            "is_namespace": self.is_namespace,
            "is_dynamic": self.is_dynamic,
            "is_type_only": self.is_type_only,
            "line_number": self.line_number,
        }
        if self.namespace_alias is not None:
            result["namespace_alias"] = self.namespace_alias
        if self.resolved_path is not None:
            result["resolved_path"] = self.resolved_path
        return result


@dataclass(frozen=True)
class ExportRecord:
    """A single export (or re-export) declared by a file."""

    name: str  # "*" for export * from
    export_type: str = ExportType.UNKNOWN
    is_default: bool = False
    is_re_export: bool = False
    source: Optional[str] = None  # Module specifier for re-exports
    line_number: int = 0
    resolved_path: Optional[str] = None  # Absolute path of a re-export source

    def with_resolved_path(self, resolved_path: Optional[str]) -> "ExportRecord":
        """Return a copy carrying the resolved absolute path."""
        return replace(self, resolved_path=resolved_path)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "export_type": self.export_type,
            "is_default": self.is_default,
            "is_re_export": self.is_re_export,
            "line_number": self.line_number,
        }
        if self.source is not None:
            result["source"] = self.source
        if self.resolved_path is not None:
            result["resolved_path"] = self.resolved_path
        return result


@dataclass
class ParameterInfo:
    """A method or constructor parameter."""

    name: str
    type: Optional[str] = None  # Declared type text, e.g. "Wheel[]"
    is_optional: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {"name": self.name, "is_optional": self.is_optional}
        if self.type is not None:
            result["type"] = self.type
        return result


@dataclass
class PropertyInfo:
    """A class property or interface property signature."""

    name: str
    type: Optional[str] = None
    visibility: str = Visibility.PUBLIC
    is_array: bool = False
    is_class_type: bool = False
    is_static: bool = False
    is_readonly: bool = False
    is_optional: bool = False
    line_number: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "visibility": self.visibility,
            "is_array": self.is_array,
            "is_class_type": self.is_class_type,
            "line_number": self.line_number,
        }
        if self.type is not None:
            result["type"] = self.type
        if self.is_static:
            result["is_static"] = True
        if self.is_readonly:
            result["is_readonly"] = True
        if self.is_optional:
            result["is_optional"] = True
        return result


@dataclass
class MethodInfo:
    """A class method or interface method signature."""

    name: str
    parameters: List[ParameterInfo] = field(default_factory=list)
    return_type: Optional[str] = None
    visibility: str = Visibility.PUBLIC
    line_number: int = 0
    is_static: bool = False
    is_abstract: bool = False
    is_async: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "parameters": [p.to_dict() for p in self.parameters],
            "visibility": self.visibility,
            "line_number": self.line_number,
        }
        if self.return_type is not None:
            result["return_type"] = self.return_type
        if self.is_static:
            result["is_static"] = True
        if self.is_abstract:
            result["is_abstract"] = True
        if self.is_async:
            result["is_async"] = True
        return result


@dataclass
class ClassInfo:
    """A class or interface declaration.

    Identity is the name alone; see DESIGN.md for the consequences when two
    files declare classes with the same name.
    """

    name: str
    kind: str = ClassKind.CLASS
    properties: List[PropertyInfo] = field(default_factory=list)
    methods: List[MethodInfo] = field(default_factory=list)
    constructor_params: List[ParameterInfo] = field(default_factory=list)
    extends: Optional[str] = None
    implements: List[str] = field(default_factory=list)  # Extended interfaces for interfaces
    is_abstract: bool = False
    line_number: int = 0

    @property
    def is_interface(self) -> bool:
        return self.kind == ClassKind.INTERFACE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "kind": self.kind,
            "properties": [p.to_dict() for p in self.properties],
            "methods": [m.to_dict() for m in self.methods],
            "constructor_params": [p.to_dict() for p in self.constructor_params],
            "implements": list(self.implements),
            "line_number": self.line_number,
        }
        if self.extends is not None:
            result["extends"] = self.extends
        if self.is_abstract:
            result["is_abstract"] = True
        return result


@dataclass(frozen=True)
class ResolvedTypeInfo:
    """Classification of a raw declared type string.

    Derived on demand from a type string plus the file's imports; never
    persisted.
    """

    type_name: str  # Base name with array suffixes and generic arguments stripped
    is_primitive: bool = False
    is_class_type: bool = False
    is_array: bool = False
    generic_args: Tuple[str, ...] = ()
    is_external: bool = False
    source_module: Optional[str] = None

    @property
    def is_generic(self) -> bool:
        return len(self.generic_args) > 0


@dataclass(frozen=True)
class RelationshipEdge:
    """A classified relationship between two types.

    Identity for deduplication is (from_class, to_class, kind, context).
    """

    from_class: str
    to_class: str
    kind: str  # RelationshipKind value
    context: str = ""  # Human-readable origin, e.g. "constructor(logger)"
    cardinality: Optional[str] = None  # "1", "*", "1..*"
    label: Optional[str] = None  # e.g. "<<inject>>"
    line_number: int = 0

    def identity(self) -> Tuple[str, str, str, str]:
        """Key used to deduplicate edges across files."""
        return (self.from_class, self.to_class, self.kind, self.context)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: Dict[str, Any] = {
            "from": self.from_class,
            "to": self.to_class,
            "kind": self.kind,
            "context": self.context,
            "line_number": self.line_number,
        }
        if self.cardinality is not None:
            result["cardinality"] = self.cardinality
        if self.label is not None:
            result["label"] = self.label
        return result


@dataclass
class OOAnalysisResult:
    """Relationships extracted from one file, grouped by kind."""

    compositions: List[RelationshipEdge] = field(default_factory=list)
    aggregations: List[RelationshipEdge] = field(default_factory=list)
    associations: List[RelationshipEdge] = field(default_factory=list)
    dependencies: List[RelationshipEdge] = field(default_factory=list)
    injections: List[RelationshipEdge] = field(default_factory=list)
    inheritances: List[RelationshipEdge] = field(default_factory=list)
    realizations: List[RelationshipEdge] = field(default_factory=list)
    relationships: List[RelationshipEdge] = field(default_factory=list)


@dataclass
class FileAnalysis:
    """Per-file traversal result.

    depth is the BFS distance from the traversal's entry file at first
    discovery; the entry file is depth 0.
    """

    file_path: str
    depth: int
    classes: List[ClassInfo] = field(default_factory=list)
    imports: List[ImportRecord] = field(default_factory=list)
    exports: List[ExportRecord] = field(default_factory=list)
    relationships: List[RelationshipEdge] = field(default_factory=list)

    def with_depth(self, depth: int) -> "FileAnalysis":
        """Return an independent deep copy annotated with a traversal depth.

        Cached analyses are shared across calls, so callers must never
        receive the cached lists themselves.
        """
        copied = copy.deepcopy(self)
        copied.depth = depth
        return copied

    def resolved_imports(self) -> List[str]:
        """Absolute paths of the project files this file imports or re-exports, in order."""
        paths = [i.resolved_path for i in self.imports] + [e.resolved_path for e in self.exports]
        seen: List[str] = []
        for path in paths:
            if path and path not in seen:
                seen.append(path)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "file_path": self.file_path,
            "depth": self.depth,
            "classes": [c.to_dict() for c in self.classes],
            "imports": [i.to_dict() for i in self.imports],
            "exports": [e.to_dict() for e in self.exports],
            "relationships": [r.to_dict() for r in self.relationships],
        }


@dataclass
class ImportIndex:
    """Project-wide forward and reverse import maps."""

    file_to_imports: Dict[str, List[str]] = field(default_factory=dict)
    import_to_files: Dict[str, List[str]] = field(default_factory=dict)
    timestamp: float = 0.0  # Unix time when the index was built
    file_count: int = 0

    def imports_of(self, file_path: str) -> List[str]:
        return self.file_to_imports.get(file_path, [])

    def importers_of(self, file_path: str) -> List[str]:
        return self.import_to_files.get(file_path, [])


@dataclass
class AnalysisStats:
    """Summary counts of a merged traversal."""

    total_files: int = 0
    total_classes: int = 0
    total_relationships: int = 0
    max_depth: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_files": self.total_files,
            "total_classes": self.total_classes,
            "total_relationships": self.total_relationships,
            "max_depth": self.max_depth,
        }


@dataclass
class BidirectionalResult:
    """Merged forward and reverse traversal from one file.

    forward_deps and reverse_deps never contain the target file itself.
    all_classes is deduplicated by class name and relationships by edge
    identity.
    """

    target_file: str
    mode: str = AnalysisMode.BIDIRECTIONAL
    forward_deps: List[FileAnalysis] = field(default_factory=list)
    reverse_deps: List[FileAnalysis] = field(default_factory=list)
    all_classes: List[ClassInfo] = field(default_factory=list)
    relationships: List[RelationshipEdge] = field(default_factory=list)
    stats: AnalysisStats = field(default_factory=AnalysisStats)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict for the diagram renderer."""
        return {
            "target_file": self.target_file,
            "mode": self.mode,
            "forward_deps": [f.to_dict() for f in self.forward_deps],
            "reverse_deps": [f.to_dict() for f in self.reverse_deps],
            "all_classes": [c.to_dict() for c in self.all_classes],
            "relationships": [r.to_dict() for r in self.relationships],
            "stats": self.stats.to_dict(),
        }


@dataclass(frozen=True)
class SkippedFile:
    """A dependency file left out of a traversal result."""

    file_path: str
    reason: str
    depth: int

    def to_dict(self) -> Dict[str, Any]:
        return {"file_path": self.file_path, "reason": self.reason, "depth": self.depth}
