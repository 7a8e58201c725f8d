# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""TypeScript/JavaScript analyzer producing the structural class model.

This module implements the parsing pipeline for TypeScript and JavaScript:
- File reading with UTF-8/latin-1 fallback encoding
- File size and line-count limits
- tree-sitter parsing with syntax error detection
- Structural extraction of classes and interfaces into ClassInfo records

Grammar selection: the ``typescript`` grammar for .ts/.mts/.cts files and
the ``tsx`` grammar (a superset accepting JSX) for everything else.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

from class_relations.errors import SourceParseError
from class_relations.models import (
    ClassInfo,
    ClassKind,
    MethodInfo,
    ParameterInfo,
    PropertyInfo,
    Visibility,
)
from class_relations.relationship_extractor import resolve_type_info
from class_relations.syntax_tree import line_of, walk

logger = logging.getLogger(__name__)

TS_LANGUAGE = Language(tree_sitter_typescript.language_typescript())
TSX_LANGUAGE = Language(tree_sitter_typescript.language_tsx())

_TYPESCRIPT_SUFFIXES = (".ts", ".mts", ".cts")

_CLASS_NODE_TYPES = ("class_declaration", "abstract_class_declaration", "class")
_PARAMETER_NODE_TYPES = ("required_parameter", "optional_parameter")
_CLASS_MEMBER_METHOD_TYPES = ("method_definition", "abstract_method_signature", "method_signature")
# Heritage expressions that name a class; calls such as mixin(Base) do not
_HERITAGE_VALUE_TYPES = ("identifier", "member_expression")


@dataclass
class ParsedSource:
    """A parsed source file: syntax tree plus the bytes it was parsed from."""

    file_path: str
    source: bytes
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def text(self, node: Optional[Node]) -> str:
        """Source text covered by a node ("" for None)."""
        if node is None:
            return ""
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def type_annotation_text(parsed: ParsedSource, node: Optional[Node]) -> Optional[str]:
    """Text of the type inside a ``type_annotation`` node (without the colon)."""
    if node is None:
        return None
    if node.type != "type_annotation":
        return parsed.text(node).lstrip(":").strip() or None
    for child in node.named_children:
        if child.type != "comment":
            return parsed.text(child).strip() or None
    return None


class TypeScriptAnalyzer:
    """tree-sitter based analyzer for TypeScript and JavaScript files.

    Pipeline:
    1. File Reading: UTF-8 with latin-1 fallback, byte and line limits
    2. Parsing: tree-sitter with the grammar matching the file extension
    3. Structural Extraction: classes and interfaces as ClassInfo

    Error handling:
    - Unreadable or over-limit files raise SourceParseError with the reason
    - Syntax errors raise SourceParseError with the first error line
    Callers decide whether that is fatal (entry file) or a skip (dependency).

    Parsers are not thread-safe, so each thread gets its own pair.
    """

    MAX_FILE_LINES = 50000
    MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10MB

    def __init__(self, max_file_lines: int = MAX_FILE_LINES):
        """Initialize the analyzer.

        Args:
            max_file_lines: Files with more lines than this are refused.
        """
        self.max_file_lines = max_file_lines
        self._local = threading.local()

    def _parser_for(self, file_path: str) -> Parser:
        use_typescript = file_path.lower().endswith(_TYPESCRIPT_SUFFIXES)
        attr = "ts_parser" if use_typescript else "tsx_parser"
        parser = getattr(self._local, attr, None)
        if parser is None:
            parser = Parser(TS_LANGUAGE if use_typescript else TSX_LANGUAGE)
            setattr(self._local, attr, parser)
        return parser

    def read_file(self, file_path: str) -> str:
        """Read a source file with UTF-8/latin-1 fallback and size limits.

        Raises:
            SourceParseError: If the file cannot be read or exceeds a limit.
        """
        path = Path(file_path)
        try:
            file_size = path.stat().st_size
            if file_size > self.MAX_FILE_SIZE_BYTES:
                raise SourceParseError(
                    file_path, f"{file_size} bytes exceeds limit ({self.MAX_FILE_SIZE_BYTES})"
                )

            raw = path.read_bytes()
        except OSError as e:
            raise SourceParseError(file_path, f"cannot read file: {e}") from e

        try:
            content = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning(f"File {file_path} is not UTF-8, using latin-1 fallback encoding")
            content = raw.decode("latin-1")

        line_count = content.count("\n") + 1
        if line_count > self.max_file_lines:
            raise SourceParseError(
                file_path, f"{line_count} lines exceeds limit ({self.max_file_lines})"
            )
        return content

    def parse(self, file_path: str) -> ParsedSource:
        """Read and parse a file.

        Raises:
            SourceParseError: If the file cannot be read or has syntax errors.
        """
        source = self.read_file(file_path).encode("utf-8")
        tree = self._parser_for(file_path).parse(source)

        if tree.root_node.has_error:
            error_node = self._first_error(tree.root_node)
            line = line_of(error_node) if error_node is not None else None
            raise SourceParseError(file_path, "syntax error", line)

        return ParsedSource(file_path=file_path, source=source, tree=tree)

    @staticmethod
    def _first_error(root: Node) -> Optional[Node]:
        for node in walk(root):
            if node.type == "ERROR" or node.is_missing:
                return node
        return None

    def extract_classes(self, parsed: ParsedSource) -> List[ClassInfo]:
        """Extract every named class and interface declaration in source order."""
        classes: List[ClassInfo] = []
        for node in walk(parsed.root):
            if node.type in _CLASS_NODE_TYPES:
                info = self._extract_class(parsed, node)
            elif node.type == "interface_declaration":
                info = self._extract_interface(parsed, node)
            else:
                continue
            if info is not None:
                classes.append(info)
        return classes

    # Classes

    def _extract_class(self, parsed: ParsedSource, node: Node) -> Optional[ClassInfo]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None

        info = ClassInfo(
            name=parsed.text(name_node),
            kind=ClassKind.CLASS,
            is_abstract=node.type == "abstract_class_declaration",
            line_number=line_of(node),
        )

        for child in node.children:
            if child.type == "class_heritage":
                self._extract_heritage(parsed, child, info)

        body = node.child_by_field_name("body")
        if body is None:
            return info

        for member in body.named_children:
            if member.type == "public_field_definition":
                info.properties.append(self._extract_field(parsed, member))
            elif member.type in _CLASS_MEMBER_METHOD_TYPES:
                method = self._extract_method(parsed, member)
                if method.name == "constructor":
                    self._extract_constructor(parsed, member, info)
                else:
                    info.methods.append(method)
        return info

    def _extract_heritage(self, parsed: ParsedSource, heritage: Node, info: ClassInfo) -> None:
        for clause in heritage.named_children:
            if clause.type == "extends_clause":
                value = clause.child_by_field_name("value")
                if value is None and clause.named_children:
                    value = clause.named_children[0]
                if value is not None and value.type in _HERITAGE_VALUE_TYPES:
                    info.extends = _strip_type_arguments(parsed.text(value))
            elif clause.type == "implements_clause":
                for type_node in clause.named_children:
                    if type_node.type != "comment":
                        info.implements.append(_strip_type_arguments(parsed.text(type_node)))

    def _extract_field(self, parsed: ParsedSource, node: Node) -> PropertyInfo:
        name_node = node.child_by_field_name("name")
        visibility, is_static, is_readonly, is_optional = self._modifiers(parsed, node)
        if name_node is not None and name_node.type == "private_property_identifier":
            visibility = Visibility.PRIVATE

        declared_type = type_annotation_text(parsed, node.child_by_field_name("type"))
        return self._property(
            name=_strip_quotes(parsed.text(name_node)),
            declared_type=declared_type,
            visibility=visibility,
            is_static=is_static,
            is_readonly=is_readonly,
            is_optional=is_optional,
            line_number=line_of(node),
        )

    def _extract_method(self, parsed: ParsedSource, node: Node) -> MethodInfo:
        name_node = node.child_by_field_name("name")
        visibility, is_static, _, _ = self._modifiers(parsed, node)
        if name_node is not None and name_node.type == "private_property_identifier":
            visibility = Visibility.PRIVATE

        return MethodInfo(
            name=_strip_quotes(parsed.text(name_node)),
            parameters=self._extract_parameters(parsed, node.child_by_field_name("parameters")),
            return_type=type_annotation_text(parsed, node.child_by_field_name("return_type")),
            visibility=visibility,
            line_number=line_of(node),
            is_static=is_static,
            is_abstract=node.type == "abstract_method_signature"
            or any(c.type == "abstract" for c in node.children),
            is_async=any(c.type == "async" for c in node.children),
        )

    def _extract_constructor(self, parsed: ParsedSource, node: Node, info: ClassInfo) -> None:
        """Record constructor parameters, and parameter properties as properties."""
        params_node = node.child_by_field_name("parameters")
        info.constructor_params = self._extract_parameters(parsed, params_node)
        if params_node is None:
            return

        for param_node, param in zip(self._parameter_nodes(params_node), info.constructor_params):
            modifier = None
            is_readonly = False
            for child in param_node.children:
                if child.type == "accessibility_modifier":
                    modifier = parsed.text(child)
                elif child.type == "readonly":
                    is_readonly = True
            if modifier is None and not is_readonly:
                continue
            info.properties.append(
                self._property(
                    name=param.name,
                    declared_type=param.type,
                    visibility=modifier or Visibility.PUBLIC,
                    is_readonly=is_readonly,
                    is_optional=param.is_optional,
                    line_number=line_of(param_node),
                )
            )

    @staticmethod
    def _parameter_nodes(params_node: Node) -> List[Node]:
        return [c for c in params_node.named_children if c.type in _PARAMETER_NODE_TYPES]

    def _extract_parameters(
        self, parsed: ParsedSource, params_node: Optional[Node]
    ) -> List[ParameterInfo]:
        if params_node is None:
            return []

        parameters: List[ParameterInfo] = []
        for node in self._parameter_nodes(params_node):
            pattern = node.child_by_field_name("pattern")
            if pattern is not None and pattern.type == "rest_pattern" and pattern.named_children:
                pattern = pattern.named_children[0]
            type_node = node.child_by_field_name("type")
            if type_node is None:
                type_node = next(
                    (c for c in node.named_children if c.type == "type_annotation"), None
                )
            parameters.append(
                ParameterInfo(
                    name=parsed.text(pattern),
                    type=type_annotation_text(parsed, type_node),
                    is_optional=node.type == "optional_parameter",
                )
            )
        return parameters

    @staticmethod
    def _modifiers(parsed: ParsedSource, node: Node) -> Tuple[str, bool, bool, bool]:
        """Return (visibility, is_static, is_readonly, is_optional) of a member."""
        visibility = Visibility.PUBLIC
        is_static = is_readonly = is_optional = False
        for child in node.children:
            if child.type == "accessibility_modifier":
                visibility = parsed.text(child)
            elif child.type == "static":
                is_static = True
            elif child.type == "readonly":
                is_readonly = True
            elif child.type == "?":
                is_optional = True
        return visibility, is_static, is_readonly, is_optional

    @staticmethod
    def _property(
        name: str,
        declared_type: Optional[str],
        visibility: str,
        line_number: int,
        is_static: bool = False,
        is_readonly: bool = False,
        is_optional: bool = False,
    ) -> PropertyInfo:
        resolved = resolve_type_info(declared_type, [])
        return PropertyInfo(
            name=name,
            type=declared_type,
            visibility=visibility,
            is_array=resolved.is_array if resolved else False,
            is_class_type=resolved.is_class_type if resolved else False,
            is_static=is_static,
            is_readonly=is_readonly,
            is_optional=is_optional,
            line_number=line_number,
        )

    # Interfaces

    def _extract_interface(self, parsed: ParsedSource, node: Node) -> Optional[ClassInfo]:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return None

        info = ClassInfo(
            name=parsed.text(name_node),
            kind=ClassKind.INTERFACE,
            line_number=line_of(node),
        )

        for child in node.children:
            if child.type == "extends_type_clause":
                for type_node in child.named_children:
                    if type_node.type != "comment":
                        info.implements.append(_strip_type_arguments(parsed.text(type_node)))

        body = node.child_by_field_name("body")
        if body is None:
            return info

        for member in body.named_children:
            if member.type == "property_signature":
                name_node = member.child_by_field_name("name")
                visibility, is_static, is_readonly, is_optional = self._modifiers(parsed, member)
                info.properties.append(
                    self._property(
                        name=_strip_quotes(parsed.text(name_node)),
                        declared_type=type_annotation_text(
                            parsed, member.child_by_field_name("type")
                        ),
                        visibility=visibility,
                        is_static=is_static,
                        is_readonly=is_readonly,
                        is_optional=is_optional,
                        line_number=line_of(member),
                    )
                )
            elif member.type == "method_signature":
                info.methods.append(self._extract_method(parsed, member))
        return info


def _strip_type_arguments(text: str) -> str:
    """``Repository<User>`` -> ``Repository``."""
    return text.split("<", 1)[0].strip()


def _strip_quotes(text: str) -> str:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text
