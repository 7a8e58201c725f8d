# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Object-oriented relationship extraction.

RelationshipExtractor turns one file's structural model (ClassInfo list plus
ImportRecords) into classified RelationshipEdges. Each relationship kind has
exactly one classification function operating over plain structural data:

- Composition: private property of a class type (cardinality 1 or 1..*)
- Aggregation: public/protected array property of a class type (cardinality *)
- Association: public/protected scalar property of a class type (cardinality 1)
- Dependency: method parameter or return type of a class type
- Injection: constructor parameter of a class type (<<inject>>)
- Inheritance / Realization: from a declaration's extends / implements

The extractor also produces ImportRecords and ExportRecords from a parsed
syntax tree. It has no side effects and keeps no state.
"""

import logging
import re
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Sequence, Tuple

from class_relations.models import (
    ClassInfo,
    ExportRecord,
    ExportType,
    ImportRecord,
    OOAnalysisResult,
    PropertyInfo,
    RelationshipEdge,
    RelationshipKind,
    ResolvedTypeInfo,
    Visibility,
)
from class_relations.syntax_tree import line_of, walk

if TYPE_CHECKING:
    from class_relations.analyzers.typescript_analyzer import ParsedSource

logger = logging.getLogger(__name__)

PRIMITIVE_TYPES = frozenset(
    {
        "string",
        "number",
        "boolean",
        "null",
        "undefined",
        "void",
        "any",
        "unknown",
        "never",
        "bigint",
        "symbol",
        "object",
    }
)

# Capitalized names that are never treated as user class types
BUILTIN_TYPES = frozenset(
    {
        "Array",
        "ReadonlyArray",
        "Map",
        "Set",
        "WeakMap",
        "WeakSet",
        "Promise",
        "Date",
        "RegExp",
        "Error",
        "Record",
        "Partial",
        "Required",
        "Readonly",
        "Pick",
        "Omit",
        "Object",
        "Function",
        "String",
        "Number",
        "Boolean",
        "Symbol",
        "BigInt",
    }
)

_ARRAY_GENERICS = ("Array", "ReadonlyArray")
_NULLISH = ("null", "undefined")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*$")
_BRACKETS = {"<": ">", "(": ")", "[": "]", "{": "}"}

_INJECT_LABEL = "<<inject>>"

_DECLARATION_EXPORT_TYPES = {
    "class_declaration": ExportType.CLASS,
    "abstract_class_declaration": ExportType.CLASS,
    "function_declaration": ExportType.FUNCTION,
    "generator_function_declaration": ExportType.FUNCTION,
    "function_signature": ExportType.FUNCTION,
    "interface_declaration": ExportType.INTERFACE,
    "type_alias_declaration": ExportType.TYPE,
    "enum_declaration": ExportType.ENUM,
    "internal_module": ExportType.NAMESPACE,
    "module": ExportType.NAMESPACE,
}

_DEFAULT_VALUE_EXPORT_TYPES = {
    "class": ExportType.CLASS,
    "function_expression": ExportType.FUNCTION,
    "function": ExportType.FUNCTION,
    "generator_function": ExportType.FUNCTION,
    "arrow_function": ExportType.FUNCTION,
}


def _split_top_level(text: str, separator: str) -> List[str]:
    """Split on a separator character outside any bracket pair or string."""
    parts: List[str] = []
    stack: List[str] = []
    quote: Optional[str] = None
    current: List[str] = []

    for char in text:
        if quote:
            current.append(char)
            if char == quote:
                quote = None
            continue
        if char in ("'", '"', "`"):
            quote = char
        elif char in _BRACKETS:
            stack.append(_BRACKETS[char])
        elif stack and char == stack[-1]:
            stack.pop()
        elif char == separator and not stack:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)

    parts.append("".join(current).strip())
    return [p for p in parts if p]


def _is_wrapped(text: str, open_char: str, close_char: str) -> bool:
    """Whether the first bracket in text closes at its very last character."""
    if not (text.startswith(open_char) and text.endswith(close_char)):
        return False
    depth = 0
    for index, char in enumerate(text):
        if char == open_char:
            depth += 1
        elif char == close_char:
            depth -= 1
            if depth == 0:
                return index == len(text) - 1
    return False


def _binding_module(name: str, imports: Sequence[ImportRecord]) -> Optional[str]:
    for record in imports:
        if name in record.specifiers or record.namespace_alias == name:
            return record.source
    return None


def resolve_type_info(
    raw_type: Optional[str], imports: Sequence[ImportRecord]
) -> Optional[ResolvedTypeInfo]:
    """Classify a declared type string.

    Args:
        raw_type: Type text as written, e.g. "Wheel[]" or "Promise<User | null>".
        imports: Import records of the file the type appears in.

    Returns:
        ResolvedTypeInfo, or None for an empty type.
    """
    if raw_type is None:
        return None
    text = raw_type.strip()
    if not text:
        return None

    # Nullable unions collapse to the non-nullish member; other unions use the first
    members = _split_top_level(text, "|")
    if len(members) > 1:
        non_nullish = [m for m in members if m not in _NULLISH]
        text = (non_nullish or members)[0]

    is_array = False
    if text.startswith("readonly "):
        text = text[len("readonly ") :].strip()
    while text.endswith("[]"):
        is_array = True
        text = text[:-2].strip()

    if _is_wrapped(text, "(", ")"):
        inner = resolve_type_info(text[1:-1], imports)
        if inner is None:
            return None
        if is_array and not inner.is_array:
            return ResolvedTypeInfo(
                type_name=inner.type_name,
                is_primitive=inner.is_primitive,
                is_class_type=inner.is_class_type,
                is_array=True,
                generic_args=inner.generic_args,
                is_external=inner.is_external,
                source_module=inner.source_module,
            )
        return inner

    generic_args: Tuple[str, ...] = ()
    open_index = text.find("<")
    if open_index > 0 and text.endswith(">") and _is_wrapped(text[open_index:], "<", ">"):
        generic_args = tuple(_split_top_level(text[open_index + 1 : -1], ","))
        text = text[:open_index].strip()
        if text in _ARRAY_GENERICS:
            is_array = True

    if not _IDENTIFIER_RE.match(text):
        # Literal, function, object literal or tuple types
        return ResolvedTypeInfo(type_name=text, is_array=is_array, generic_args=generic_args)

    segments = text.split(".")
    type_name = segments[-1]
    is_primitive = len(segments) == 1 and type_name.lower() in PRIMITIVE_TYPES
    is_class_type = not is_primitive and type_name not in BUILTIN_TYPES and type_name[:1].isupper()

    source_module = _binding_module(segments[0], imports)
    return ResolvedTypeInfo(
        type_name=type_name,
        is_primitive=is_primitive,
        is_class_type=is_class_type,
        is_array=is_array,
        generic_args=generic_args,
        is_external=source_module is not None,
        source_module=source_module,
    )


class RelationshipExtractor:
    """Classifies OO relationships and extracts module boundary records.

    All methods are pure functions of their inputs.
    """

    # Type resolution

    def resolve_type_info(
        self, raw_type: Optional[str], imports: Sequence[ImportRecord]
    ) -> Optional[ResolvedTypeInfo]:
        """Classify a declared type string; see the module-level resolve_type_info."""
        return resolve_type_info(raw_type, imports)

    def _class_targets(
        self,
        raw_type: Optional[str],
        imports: Sequence[ImportRecord],
        unwrap_generics: bool = False,
    ) -> List[Tuple[str, bool]]:
        """Class types referenced by a declared type, as (name, is_array) pairs.

        ``T[]`` and ``Array<T>`` target ``T``. With unwrap_generics, other
        non-class containers (``Promise<User>``, ``Map<K, V>``) are searched
        argument by argument.
        """
        resolved = resolve_type_info(raw_type, imports)
        if resolved is None or resolved.is_primitive:
            return []
        if resolved.is_class_type:
            return [(resolved.type_name, resolved.is_array)]

        targets: List[Tuple[str, bool]] = []
        if resolved.type_name in _ARRAY_GENERICS and resolved.generic_args:
            for name, _ in self._class_targets(resolved.generic_args[0], imports, unwrap_generics):
                targets.append((name, True))
        elif unwrap_generics:
            for arg in resolved.generic_args:
                targets.extend(self._class_targets(arg, imports, unwrap_generics))
        return targets

    def _property_edges(
        self, classes: Sequence[ClassInfo], imports: Sequence[ImportRecord]
    ) -> Iterator[Tuple[ClassInfo, PropertyInfo, str, bool]]:
        for cls in classes:
            for prop in cls.properties:
                for target, is_array in self._class_targets(prop.type, imports):
                    yield cls, prop, target, is_array or prop.is_array

    # Classification

    def extract_composition(
        self, classes: Sequence[ClassInfo], imports: Sequence[ImportRecord]
    ) -> List[RelationshipEdge]:
        """Private properties of a class type: the owner controls the part's lifetime."""
        edges: List[RelationshipEdge] = []
        for cls, prop, target, is_array in self._property_edges(classes, imports):
            if prop.visibility != Visibility.PRIVATE:
                continue
            edges.append(
                RelationshipEdge(
                    from_class=cls.name,
                    to_class=target,
                    kind=RelationshipKind.COMPOSITION,
                    context=prop.name,
                    cardinality="1..*" if is_array else "1",
                    line_number=prop.line_number,
                )
            )
        return edges

    def extract_aggregation(
        self, classes: Sequence[ClassInfo], imports: Sequence[ImportRecord]
    ) -> List[RelationshipEdge]:
        """Public or protected array properties of a class type."""
        edges: List[RelationshipEdge] = []
        for cls, prop, target, is_array in self._property_edges(classes, imports):
            if prop.visibility == Visibility.PRIVATE or not is_array:
                continue
            edges.append(
                RelationshipEdge(
                    from_class=cls.name,
                    to_class=target,
                    kind=RelationshipKind.AGGREGATION,
                    context=prop.name,
                    cardinality="*",
                    line_number=prop.line_number,
                )
            )
        return edges

    def extract_association(
        self, classes: Sequence[ClassInfo], imports: Sequence[ImportRecord]
    ) -> List[RelationshipEdge]:
        """Public or protected non-array properties of a class type."""
        edges: List[RelationshipEdge] = []
        for cls, prop, target, is_array in self._property_edges(classes, imports):
            if prop.visibility == Visibility.PRIVATE or is_array:
                continue
            edges.append(
                RelationshipEdge(
                    from_class=cls.name,
                    to_class=target,
                    kind=RelationshipKind.ASSOCIATION,
                    context=prop.name,
                    cardinality="1",
                    line_number=prop.line_number,
                )
            )
        return edges

    def extract_dependency(
        self, classes: Sequence[ClassInfo], imports: Sequence[ImportRecord]
    ) -> List[RelationshipEdge]:
        """Class types used by method parameters and return types."""
        edges: List[RelationshipEdge] = []
        for cls in classes:
            for method in cls.methods:
                for param in method.parameters:
                    for target, _ in self._class_targets(param.type, imports, True):
                        edges.append(
                            RelationshipEdge(
                                from_class=cls.name,
                                to_class=target,
                                kind=RelationshipKind.DEPENDENCY,
                                context=f"{method.name}({param.name})",
                                line_number=method.line_number,
                            )
                        )
                for target, _ in self._class_targets(method.return_type, imports, True):
                    edges.append(
                        RelationshipEdge(
                            from_class=cls.name,
                            to_class=target,
                            kind=RelationshipKind.DEPENDENCY,
                            context=f"{method.name}() returns {target}",
                            line_number=method.line_number,
                        )
                    )
        return edges

    def extract_dependency_injection(
        self, classes: Sequence[ClassInfo], imports: Sequence[ImportRecord]
    ) -> List[RelationshipEdge]:
        """Class types received through constructor parameters."""
        edges: List[RelationshipEdge] = []
        for cls in classes:
            for param in cls.constructor_params:
                for target, _ in self._class_targets(param.type, imports):
                    edges.append(
                        RelationshipEdge(
                            from_class=cls.name,
                            to_class=target,
                            kind=RelationshipKind.INJECTION,
                            context=f"constructor({param.name})",
                            label=_INJECT_LABEL,
                            line_number=cls.line_number,
                        )
                    )
        return edges

    def extract_inheritance(
        self, classes: Sequence[ClassInfo]
    ) -> Tuple[List[RelationshipEdge], List[RelationshipEdge]]:
        """Inheritance and realization edges from extends / implements.

        An interface's extended interfaces are stored in ``implements`` but
        are inheritance, not realization.

        Returns:
            (inheritances, realizations)
        """
        inheritances: List[RelationshipEdge] = []
        realizations: List[RelationshipEdge] = []
        for cls in classes:
            if cls.extends:
                inheritances.append(
                    RelationshipEdge(
                        from_class=cls.name,
                        to_class=cls.extends.split(".")[-1],
                        kind=RelationshipKind.INHERITANCE,
                        context="extends",
                        line_number=cls.line_number,
                    )
                )
            for name in cls.implements:
                target = name.split(".")[-1]
                if cls.is_interface:
                    edge = RelationshipEdge(
                        from_class=cls.name,
                        to_class=target,
                        kind=RelationshipKind.INHERITANCE,
                        context="extends",
                        line_number=cls.line_number,
                    )
                    inheritances.append(edge)
                else:
                    edge = RelationshipEdge(
                        from_class=cls.name,
                        to_class=target,
                        kind=RelationshipKind.REALIZATION,
                        context="implements",
                        line_number=cls.line_number,
                    )
                    realizations.append(edge)
        return inheritances, realizations

    def analyze(
        self, classes: Sequence[ClassInfo], imports: Sequence[ImportRecord]
    ) -> OOAnalysisResult:
        """Run every classifier and combine the results.

        The flattened ``relationships`` list is deduplicated by edge identity.
        """
        inheritances, realizations = self.extract_inheritance(classes)
        result = OOAnalysisResult(
            compositions=self.extract_composition(classes, imports),
            aggregations=self.extract_aggregation(classes, imports),
            associations=self.extract_association(classes, imports),
            dependencies=self.extract_dependency(classes, imports),
            injections=self.extract_dependency_injection(classes, imports),
            inheritances=inheritances,
            realizations=realizations,
        )
        result.relationships = dedupe_edges(
            result.inheritances
            + result.realizations
            + result.compositions
            + result.aggregations
            + result.associations
            + result.dependencies
            + result.injections
        )
        logger.debug(
            f"Classified {len(result.relationships)} relationships across {len(classes)} classes"
        )
        return result

    # Module boundary records

    def extract_imports(self, parsed: "ParsedSource") -> List[ImportRecord]:
        """Import records in source order.

        Covers static imports (default, named, namespace, type-only,
        side-effect), ``import x = require()``, dynamic ``import()`` and
        ``require()`` calls with a string literal argument.
        """
        records: List[ImportRecord] = []
        for node in walk(parsed.root):
            if node.type == "import_statement":
                record = self._import_statement(parsed, node)
            elif node.type == "call_expression":
                record = self._dynamic_import(parsed, node)
            else:
                continue
            if record is not None:
                records.append(record)
        return records

    def _import_statement(self, parsed: "ParsedSource", node: Any) -> Optional[ImportRecord]:
        source_node = node.child_by_field_name("source")
        specifiers: List[str] = []
        is_default = is_namespace = False
        namespace_alias: Optional[str] = None
        is_type_only = any(child.type == "type" for child in node.children)
        is_dynamic = False

        for child in node.named_children:
            if child.type == "import_clause":
                for part in child.named_children:
                    if part.type == "identifier":
                        is_default = True
                        specifiers.append(parsed.text(part))
                    elif part.type == "namespace_import":
                        is_namespace = True
                        alias = next(
                            (c for c in part.named_children if c.type == "identifier"), None
                        )
                        namespace_alias = parsed.text(alias) or None
                    elif part.type == "named_imports":
                        for spec in part.named_children:
                            if spec.type != "import_specifier":
                                continue
                            local = spec.child_by_field_name("alias")
                            if local is None:
                                local = spec.child_by_field_name("name")
                            specifiers.append(parsed.text(local))
            elif child.type == "import_require_clause":
                # import x = require('./x')
                is_dynamic = True
                binding = next((c for c in child.named_children if c.type == "identifier"), None)
                if binding is not None:
                    specifiers.append(parsed.text(binding))
                source_node = child.child_by_field_name("source")

        if source_node is None:
            return None
        return ImportRecord(
            source=_string_value(parsed.text(source_node)),
            specifiers=tuple(specifiers),
            is_default=is_default,
            is_namespace=is_namespace,
            namespace_alias=namespace_alias,
            is_dynamic=is_dynamic,
            is_type_only=is_type_only,
            line_number=line_of(node),
        )

    def _dynamic_import(self, parsed: "ParsedSource", node: Any) -> Optional[ImportRecord]:
        function = node.child_by_field_name("function")
        if function is None:
            return None
        if not (
            function.type == "import"
            or (function.type == "identifier" and parsed.text(function) == "require")
        ):
            return None

        arguments = node.child_by_field_name("arguments")
        if arguments is None:
            return None
        first = next((c for c in arguments.named_children if c.type != "comment"), None)
        if first is None or first.type != "string":
            return None

        return ImportRecord(
            source=_string_value(parsed.text(first)),
            is_dynamic=True,
            line_number=line_of(node),
        )

    def extract_exports(self, parsed: "ParsedSource") -> List[ExportRecord]:
        """Export records in source order, including re-exports."""
        records: List[ExportRecord] = []
        for node in walk(parsed.root):
            if node.type == "export_statement":
                records.extend(self._export_statement(parsed, node))
        return records

    def _export_statement(self, parsed: "ParsedSource", node: Any) -> List[ExportRecord]:
        line = line_of(node)
        source_node = node.child_by_field_name("source")
        is_default = any(child.type == "default" for child in node.children)

        if source_node is not None:
            source = _string_value(parsed.text(source_node))
            names = self._export_clause_names(parsed, node)
            if names is None:
                namespace = next(
                    (c for c in node.named_children if c.type == "namespace_export"), None
                )
                if namespace is not None:
                    alias = next(
                        (c for c in namespace.named_children if c.type != "comment"), None
                    )
                    names = [_string_value(parsed.text(alias))]
                else:
                    names = ["*"]
            return [
                ExportRecord(name=name, is_re_export=True, source=source, line_number=line)
                for name in names
            ]

        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            return [
                ExportRecord(
                    name=name, export_type=export_type, is_default=is_default, line_number=line
                )
                for name, export_type in self._declaration_exports(parsed, declaration)
            ]

        if is_default:
            value = node.child_by_field_name("value")
            name = "default"
            export_type = ExportType.EXPRESSION
            if value is not None:
                export_type = _DEFAULT_VALUE_EXPORT_TYPES.get(value.type, ExportType.EXPRESSION)
                value_name = value.child_by_field_name("name")
                if value.type == "identifier":
                    name = parsed.text(value)
                elif value_name is not None:
                    name = parsed.text(value_name)
            return [
                ExportRecord(name=name, export_type=export_type, is_default=True, line_number=line)
            ]

        names = self._export_clause_names(parsed, node) or []
        return [ExportRecord(name=name, line_number=line) for name in names]

    @staticmethod
    def _export_clause_names(parsed: "ParsedSource", node: Any) -> Optional[List[str]]:
        clause = next((c for c in node.named_children if c.type == "export_clause"), None)
        if clause is None:
            return None
        names: List[str] = []
        for spec in clause.named_children:
            if spec.type != "export_specifier":
                continue
            exported = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
            names.append(_string_value(parsed.text(exported)))
        return names

    def _declaration_exports(
        self, parsed: "ParsedSource", declaration: Any
    ) -> List[Tuple[str, str]]:
        if declaration.type == "ambient_declaration":
            inner = next((c for c in declaration.named_children if c.type != "comment"), None)
            return self._declaration_exports(parsed, inner) if inner is not None else []

        if declaration.type in ("lexical_declaration", "variable_declaration"):
            is_const = any(child.type == "const" for child in declaration.children)
            export_type = ExportType.CONST if is_const else ExportType.VARIABLE
            exports: List[Tuple[str, str]] = []
            for declarator in declaration.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name_node = declarator.child_by_field_name("name")
                if name_node is not None:
                    exports.append((parsed.text(name_node), export_type))
            return exports

        export_type = _DECLARATION_EXPORT_TYPES.get(declaration.type, ExportType.UNKNOWN)
        name_node = declaration.child_by_field_name("name")
        name = parsed.text(name_node) if name_node is not None else "default"
        return [(name, export_type)]


def dedupe_edges(edges: Sequence[RelationshipEdge]) -> List[RelationshipEdge]:
    """Drop edges whose identity was already seen, keeping first occurrences."""
    seen: Dict[Tuple[str, str, str, str], None] = {}
    unique: List[RelationshipEdge] = []
    for edge in edges:
        key = edge.identity()
        if key in seen:
            continue
        seen[key] = None
        unique.append(edge)
    return unique


def _string_value(text: str) -> str:
    if len(text) >= 2 and text[0] in ("'", '"', "`") and text[-1] == text[0]:
        return text[1:-1]
    return text
