# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Static cross-file object-oriented relationship analyzer for TypeScript/JavaScript."""

from .analyzers import ParsedSource, TypeScriptAnalyzer
from .config import Config, ConfigurationError
from .errors import (
    AnalysisError,
    InvalidDepthError,
    ParseFailedError,
    ProjectNotFoundError,
    SourceFileNotFoundError,
    SourceParseError,
)
from .import_index import ImportIndexBuilder, ImportIndexOptions
from .models import (
    AnalysisMode,
    AnalysisStats,
    BidirectionalResult,
    ClassInfo,
    ExportRecord,
    FileAnalysis,
    ImportIndex,
    ImportRecord,
    MethodInfo,
    OOAnalysisResult,
    ParameterInfo,
    PropertyInfo,
    RelationshipEdge,
    RelationshipKind,
    ResolvedTypeInfo,
    SkippedFile,
)
from .parse_cache import ParseCache
from .path_resolver import PathResolver
from .relationship_extractor import RelationshipExtractor
from .service import CrossFileAnalysisService

__version__ = "0.1.0"

__all__ = [
    "CrossFileAnalysisService",
    "ImportIndexBuilder",
    "ImportIndexOptions",
    "PathResolver",
    "RelationshipExtractor",
    "ParseCache",
    "TypeScriptAnalyzer",
    "ParsedSource",
    "Config",
    "ConfigurationError",
    "AnalysisError",
    "InvalidDepthError",
    "ParseFailedError",
    "ProjectNotFoundError",
    "SourceFileNotFoundError",
    "SourceParseError",
    "AnalysisMode",
    "AnalysisStats",
    "BidirectionalResult",
    "ClassInfo",
    "ExportRecord",
    "FileAnalysis",
    "ImportIndex",
    "ImportRecord",
    "MethodInfo",
    "OOAnalysisResult",
    "ParameterInfo",
    "PropertyInfo",
    "RelationshipEdge",
    "RelationshipKind",
    "ResolvedTypeInfo",
    "SkippedFile",
]
