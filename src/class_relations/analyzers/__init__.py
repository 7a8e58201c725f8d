# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Language analyzers producing the structural class model.

Components:
- TypeScriptAnalyzer: tree-sitter analyzer for TypeScript and JavaScript files
- ParsedSource: syntax tree plus source bytes handed to RelationshipExtractor
"""

from class_relations.analyzers.typescript_analyzer import ParsedSource, TypeScriptAnalyzer

__all__ = ["ParsedSource", "TypeScriptAnalyzer"]
