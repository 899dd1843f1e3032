"""Type checker over a ``Program``.

Answers "what is the type of this node" for expressions, declarations and
type annotations. Coverage targets what router code actually contains:
object and array literals, calls into generic builders and helpers,
contextually typed callbacks, ``async`` functions, interfaces, aliases,
classes, enums, the common utility types and conditional types with
``infer``. Anything it cannot follow becomes ``unknown``.

Results are memoized per node span. Re-entrant requests for the same node
(recursive functions, self-referential aliases) yield ``unknown`` instead
of recursing.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from ..ts_parser import (
    SourceUnit,
    call_arguments,
    has_token,
    is_function_node,
    iter_return_expressions,
    property_name,
    string_value,
)
from .program import TYPE, VALUE, Declaration, Program, function_parameters, parameter_pattern
from .type_model import (
    ANY,
    BOOLEAN,
    NEVER,
    NULL,
    NUMBER,
    STRING,
    UNDEFINED,
    UNKNOWN,
    VOID,
    ArrayOf,
    FunctionSig,
    Intersection,
    Literal,
    NamedRef,
    ObjectShape,
    Param,
    Primitive,
    Prop,
    TsType,
    TupleOf,
    TypeParamRef,
    Union,
    make_union,
    map_type,
    remove_nullish,
    substitute,
    unbound_to_unknown,
    widen,
)

logger = logging.getLogger(__name__)

MAX_EXPANSION_STEPS = 12
MAX_UNIFY_DEPTH = 8

# Globals rendered by name and never expanded from lib declarations.
OPAQUE_GLOBALS = frozenset(
    {
        "Promise", "PromiseLike", "Date", "Map", "Set", "WeakMap", "WeakSet",
        "ReadonlyMap", "ReadonlySet", "RegExp", "Error", "Buffer", "URL",
        "Uint8Array", "ArrayBuffer", "Function", "Object", "Symbol", "BigInt",
        "Iterable", "AsyncIterable", "Iterator", "AsyncIterator", "Generator",
        "AsyncGenerator", "Response", "Request", "Headers", "Blob", "File",
        "FormData", "ReadableStream",
    }
)

UTILITY_TYPES = frozenset(
    {
        "Record", "Partial", "Required", "Readonly", "Pick", "Omit", "NonNullable",
        "Awaited", "Exclude", "Extract", "ReturnType", "Parameters",
        "Uppercase", "Lowercase", "Capitalize", "Uncapitalize",
    }
)

_STRING_METHODS = {
    "toUpperCase": STRING, "toLowerCase": STRING, "trim": STRING, "trimStart": STRING,
    "trimEnd": STRING, "slice": STRING, "substring": STRING, "substr": STRING,
    "replace": STRING, "replaceAll": STRING, "padStart": STRING, "padEnd": STRING,
    "repeat": STRING, "concat": STRING, "charAt": STRING, "normalize": STRING,
    "toString": STRING, "toLocaleUpperCase": STRING, "toLocaleLowerCase": STRING,
    "split": ArrayOf(STRING), "includes": BOOLEAN, "startsWith": BOOLEAN,
    "endsWith": BOOLEAN, "indexOf": NUMBER, "lastIndexOf": NUMBER,
    "charCodeAt": NUMBER, "codePointAt": NUMBER, "localeCompare": NUMBER,
}

_NUMBER_METHODS = {
    "toFixed": STRING, "toString": STRING, "toPrecision": STRING,
    "toLocaleString": STRING, "toExponential": STRING, "valueOf": NUMBER,
}

_DATE_STRING_METHODS = frozenset(
    {"toISOString", "toString", "toDateString", "toTimeString", "toLocaleString",
     "toLocaleDateString", "toLocaleTimeString", "toUTCString", "toJSON"}
)


def _method(returns: TsType) -> FunctionSig:
    return FunctionSig((Param("args", ArrayOf(ANY), rest=True),), returns)


def _string_literal(raw: str) -> Literal:
    return Literal("string", '"' + raw.replace('"', '\\"') + '"')


def _literal_value(literal: Literal) -> str:
    return literal.text[1:-1] if literal.base == "string" else literal.text


def is_promise_name(name: str) -> bool:
    return (
        name in ("Promise", "PromiseLike")
        or name.endswith("PrismaPromise")
        or name.startswith("Prisma__")
    )


def mentions_type_params(t: TsType) -> bool:
    found = []

    def visit(node: TsType) -> TsType | None:
        if isinstance(node, TypeParamRef):
            found.append(node)
            return node
        return None

    map_type(t, visit)
    return bool(found)


class TypeChecker:
    """Type oracle for one ``Program``."""

    def __init__(self, program: Program):
        self.program = program
        self._cache: dict[tuple, Any] = {}
        self._active: set[tuple] = set()

    # -- memoization -----------------------------------------------------

    def _memo(self, key: tuple, compute: Callable[[], Any], fallback: Any = UNKNOWN) -> Any:
        if key in self._cache:
            return self._cache[key]
        if key in self._active:
            return fallback
        self._active.add(key)
        try:
            result = compute()
        finally:
            self._active.discard(key)
        self._cache[key] = result
        return result

    @staticmethod
    def _node_key(tag: str, unit: SourceUnit, node: Any) -> tuple:
        return (tag, unit.path, node.start_byte, node.end_byte, node.type)

    # -- expressions -----------------------------------------------------

    def type_at(self, unit: SourceUnit, node: Any) -> TsType:
        """Type of the expression ``node`` in ``unit`` (a unit of this program)."""
        return self.expression_type(unit, node)

    def expression_type(self, unit: SourceUnit, node: Any) -> TsType:
        if node is None:
            return UNKNOWN
        return self._memo(
            self._node_key("expr", unit, node),
            lambda: self._compute_expression(unit, node),
        )

    def _compute_expression(self, unit: SourceUnit, node: Any) -> TsType:
        kind = node.type
        named = [c for c in node.named_children if c.type != "comment"]

        if kind in ("parenthesized_expression", "satisfies_expression"):
            return self.expression_type(unit, named[0]) if named else UNKNOWN
        if kind == "as_expression":
            if len(named) >= 2:
                return self.type_from_node(unit, named[1])
            return self.expression_type(unit, named[0]) if named else UNKNOWN
        if kind == "type_assertion":
            if len(named) >= 2:
                return self._first_type_argument(unit, named[0])
            return UNKNOWN
        if kind == "non_null_expression":
            return remove_nullish(self.expression_type(unit, named[0])) if named else UNKNOWN
        if kind == "string":
            raw = string_value(node, unit.source)
            if unit.text(node).startswith("'"):
                raw = raw.replace("\\'", "'")
            return _string_literal(raw)
        if kind == "template_string":
            return STRING
        if kind == "number":
            return Literal("number", unit.text(node))
        if kind in ("true", "false"):
            return Literal("boolean", kind)
        if kind == "null":
            return NULL
        if kind == "undefined":
            return UNDEFINED
        if kind == "regex":
            return NamedRef("RegExp")
        if kind == "identifier":
            return self._identifier_type(unit, node)
        if kind == "this":
            return self._this_type(unit, node)
        if kind == "object":
            return self._object_literal_type(unit, node)
        if kind == "array":
            return self._array_literal_type(unit, node)
        if is_function_node(node):
            return self.function_signature(unit, node)
        if kind == "call_expression":
            return self._call_type(unit, node)
        if kind == "new_expression":
            return self._new_type(unit, node)
        if kind == "member_expression":
            return self._member_type(unit, node)
        if kind == "subscript_expression":
            obj = remove_nullish(self.expression_type(unit, node.child_by_field_name("object")))
            index = self.expression_type(unit, node.child_by_field_name("index"))
            return self.indexed_access(obj, index)
        if kind == "await_expression":
            return self.awaited(self.expression_type(unit, named[0])) if named else UNKNOWN
        if kind == "ternary_expression":
            return make_union(
                [
                    self.expression_type(unit, node.child_by_field_name("consequence")),
                    self.expression_type(unit, node.child_by_field_name("alternative")),
                ]
            )
        if kind == "binary_expression":
            return self._binary_type(unit, node)
        if kind == "unary_expression":
            return self._unary_type(unit, node)
        if kind == "update_expression":
            return NUMBER
        if kind == "assignment_expression":
            return self.expression_type(unit, node.child_by_field_name("right"))
        if kind == "augmented_assignment_expression":
            return self.expression_type(unit, node.child_by_field_name("left"))
        if kind == "sequence_expression":
            return self.expression_type(unit, named[-1]) if named else UNKNOWN
        return UNKNOWN

    def _identifier_type(self, unit: SourceUnit, node: Any) -> TsType:
        name = unit.text(node)
        if name == "undefined":
            return UNDEFINED
        decl = self.program.resolve_value(unit, name, node)
        if decl is None:
            return UNKNOWN
        return self.declaration_type(decl)

    def _this_type(self, unit: SourceUnit, node: Any) -> TsType:
        current = node.parent
        while current is not None:
            if current.type in ("class_declaration", "abstract_class_declaration"):
                name_node = current.child_by_field_name("name")
                if name_node is None:
                    return UNKNOWN
                decl = Declaration("class", unit.text(name_node), current, unit)
                params = tuple(TypeParamRef(n) for n in self._type_parameter_names(current))
                return NamedRef(decl.name, params, decl, decl.key)
            if current.type in ("function_declaration", "function_expression", "function"):
                return UNKNOWN
            current = current.parent
        return UNKNOWN

    def _object_literal_type(self, unit: SourceUnit, node: Any) -> TsType:
        props: dict[str, Prop] = {}
        for child in node.named_children:
            if child.type == "pair":
                name = property_name(child.child_by_field_name("key"), unit.source)
                if name is None:
                    continue
                value_type = self.expression_type(unit, child.child_by_field_name("value"))
                props[name] = Prop(name, widen(value_type))
            elif child.type == "shorthand_property_identifier":
                name = unit.text(child)
                decl = self.program.resolve_value(unit, name, child)
                value_type = self.declaration_type(decl) if decl is not None else UNKNOWN
                props[name] = Prop(name, widen(value_type))
            elif child.type == "method_definition":
                name = property_name(child.child_by_field_name("name"), unit.source)
                if name is not None:
                    props[name] = Prop(name, self.function_signature(unit, child))
            elif child.type == "spread_element":
                inner = [c for c in child.named_children if c.type != "comment"]
                shape = self.properties_of(self.expression_type(unit, inner[0])) if inner else None
                if shape is not None:
                    for prop in shape.props:
                        props[prop.name] = prop
        return ObjectShape(tuple(props.values()))

    def _array_literal_type(self, unit: SourceUnit, node: Any) -> TsType:
        elements: list[TsType] = []
        for child in node.named_children:
            if child.type == "comment":
                continue
            if child.type == "spread_element":
                inner = [c for c in child.named_children if c.type != "comment"]
                if inner:
                    elements.append(self.element_type(self.expression_type(unit, inner[0])))
                continue
            elements.append(widen(self.expression_type(unit, child)))
        return ArrayOf(make_union(elements))

    def _member_type(self, unit: SourceUnit, node: Any) -> TsType:
        obj = node.child_by_field_name("object")
        prop = node.child_by_field_name("property")
        if obj is None or prop is None:
            return UNKNOWN
        name = unit.text(prop)
        container = self._namespace_of(unit, obj)
        if container is not None:
            member = self.program.member(container, name, VALUE)
            return self.declaration_type(member) if member is not None else UNKNOWN
        receiver = remove_nullish(self.expression_type(unit, obj))
        return self.property_type(receiver, name)

    def _namespace_of(self, unit: SourceUnit, node: Any) -> Declaration | None:
        if node.type == "identifier":
            decl = self.program.resolve_value(unit, unit.text(node), node)
        elif node.type in ("member_expression", "nested_identifier"):
            parts = [c for c in node.named_children if c.type != "comment"]
            if len(parts) < 2:
                return None
            outer = self._namespace_of(unit, parts[0])
            decl = self.program.member(outer, unit.text(parts[-1]), VALUE) if outer else None
        else:
            return None
        if decl is not None and decl.kind in ("namespace", "module"):
            return decl
        return None

    def _binary_type(self, unit: SourceUnit, node: Any) -> TsType:
        operator = node.child_by_field_name("operator")
        op = operator.type if operator is not None else ""
        left = self.expression_type(unit, node.child_by_field_name("left"))
        right = self.expression_type(unit, node.child_by_field_name("right"))
        if op == "+":
            if STRING in (widen(left), widen(right)):
                return STRING
            if widen(left) == NUMBER and widen(right) == NUMBER:
                return NUMBER
            return ANY if ANY in (left, right) else UNKNOWN
        if op in ("-", "*", "/", "%", "**", "<<", ">>", ">>>", "&", "|", "^"):
            return NUMBER
        if op in ("==", "===", "!=", "!==", "<", ">", "<=", ">=", "instanceof", "in"):
            return BOOLEAN
        if op == "&&":
            return right
        if op in ("||", "??"):
            return make_union([remove_nullish(left), right])
        return UNKNOWN

    def _unary_type(self, unit: SourceUnit, node: Any) -> TsType:
        operator = node.child_by_field_name("operator")
        op = operator.type if operator is not None else ""
        argument = node.child_by_field_name("argument")
        if op in ("!", "delete"):
            return BOOLEAN
        if op == "typeof":
            return STRING
        if op == "void":
            return UNDEFINED
        if op == "-" and argument is not None and argument.type == "number":
            return Literal("number", "-" + unit.text(argument))
        return NUMBER

    # -- calls -----------------------------------------------------------

    def _call_type(self, unit: SourceUnit, node: Any) -> TsType:
        signature, bindings = self.resolve_call(unit, node)
        if signature is None:
            callee = self.expression_type(unit, node.child_by_field_name("function"))
            return ANY if callee == ANY else UNKNOWN
        result = substitute(signature.return_type, bindings)
        result = unbound_to_unknown(result, signature.type_params)
        callee = node.child_by_field_name("function")
        if (
            callee is not None
            and callee.type == "member_expression"
            and unit.text(callee.child_by_field_name("property")) == "flatMap"
            and isinstance(result, ArrayOf)
            and isinstance(result.element, ArrayOf)
        ):
            result = result.element
        return result

    def resolve_call(
        self, unit: SourceUnit, node: Any, contextual: bool = False
    ) -> tuple[FunctionSig | None, dict[str, TsType]]:
        """Signature of a call and its inferred type-argument bindings.

        With ``contextual`` set, function arguments are left out of inference;
        their own parameter types depend on this very call.
        """
        callee = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if callee is None or arguments is None or arguments.type != "arguments":
            return None, {}
        signature = self.as_signature(self.expression_type(unit, callee))
        if signature is None:
            return None, {}
        return signature, self._infer_bindings(
            unit, signature, node.child_by_field_name("type_arguments"), call_arguments(arguments), contextual
        )

    def _infer_bindings(
        self,
        unit: SourceUnit,
        signature: FunctionSig,
        explicit: Any,
        args: list[Any],
        contextual: bool,
    ) -> dict[str, TsType]:
        bindings: dict[str, TsType] = {}
        if not signature.type_params:
            return bindings
        if explicit is not None:
            explicit_args = [c for c in explicit.named_children if c.type != "comment"]
            for name, arg in zip(signature.type_params, explicit_args):
                bindings[name] = self.type_from_node(unit, arg)
            return bindings

        names = set(signature.type_params)
        deferred = []
        for index, arg in enumerate(args):
            if arg.type == "spread_element":
                continue
            expr = arg
            while expr.type == "parenthesized_expression" and expr.named_children:
                expr = expr.named_children[0]
            if is_function_node(expr):
                deferred.append((index, arg))
                continue
            if contextual and any(is_function_node(d) for d in _descendants(expr)):
                continue
            self._unify(self.contextual_parameter(signature, index), self.expression_type(unit, arg), bindings, names)
        if not contextual:
            for index, arg in deferred:
                self._unify(self.contextual_parameter(signature, index), self.expression_type(unit, arg), bindings, names)
        return bindings

    def _new_type(self, unit: SourceUnit, node: Any) -> TsType:
        constructor = node.child_by_field_name("constructor")
        if constructor is None or constructor.type != "identifier":
            return UNKNOWN
        name = unit.text(constructor)
        type_arguments = node.child_by_field_name("type_arguments")
        args: tuple[TsType, ...] = ()
        if type_arguments is not None:
            args = tuple(
                self.type_from_node(unit, c) for c in type_arguments.named_children if c.type != "comment"
            )
        decl = self.program.resolve_value(unit, name, constructor)
        if decl is None:
            return NamedRef(name, args)
        if decl.kind != "class":
            return UNKNOWN
        params = self._type_parameter_names(decl.node)
        if not args and params:
            args = tuple(UNKNOWN for _ in params)
        return NamedRef(name, args, decl, decl.key)

    def contextual_parameter(self, signature: FunctionSig, index: int) -> TsType:
        params = signature.params
        if index < len(params):
            param = params[index]
            return self.element_type(param.type) if param.rest else param.type
        if params and params[-1].rest:
            return self.element_type(params[-1].type)
        return UNKNOWN

    def contextual_type(self, unit: SourceUnit, node: Any) -> TsType | None:
        """Type expected at ``node`` by its surroundings, if any."""
        return self._memo(
            self._node_key("ctx", unit, node),
            lambda: self._compute_contextual_type(unit, node),
            fallback=None,
        )

    def _compute_contextual_type(self, unit: SourceUnit, node: Any) -> TsType | None:
        parent = node.parent
        while parent is not None and parent.type == "parenthesized_expression":
            node, parent = parent, parent.parent
        if parent is None:
            return None

        if parent.type == "arguments":
            call = parent.parent
            if call is None or call.type != "call_expression":
                return None
            args = call_arguments(parent)
            index = next((i for i, a in enumerate(args) if a == node), None)
            if index is None:
                return None
            signature, bindings = self.resolve_call(unit, call, contextual=True)
            if signature is None:
                return None
            return substitute(self.contextual_parameter(signature, index), bindings)

        if parent.type == "variable_declarator":
            annotation = parent.child_by_field_name("type")
            if annotation is not None and parent.child_by_field_name("value") == node:
                return self.type_from_node(unit, annotation)
            return None

        if parent.type == "pair" and parent.child_by_field_name("value") == node:
            obj_context = self.contextual_type(unit, parent.parent)
            name = property_name(parent.child_by_field_name("key"), unit.source)
            if obj_context is None or name is None:
                return None
            return remove_nullish(self.property_type(obj_context, name))

        if parent.type in ("as_expression", "satisfies_expression"):
            named = [c for c in parent.named_children if c.type != "comment"]
            if len(named) >= 2:
                return self.type_from_node(unit, named[1])
            return None

        if parent.type == "array":
            array_context = self.contextual_type(unit, parent)
            return self.element_type(array_context) if array_context is not None else None

        return None

    def as_signature(self, t: TsType) -> FunctionSig | None:
        t = self.resolve_structure(t)
        if isinstance(t, FunctionSig):
            return t
        if isinstance(t, ObjectShape) and t.call_signatures:
            return t.call_signatures[0]
        if isinstance(t, (Union, Intersection)):
            for member in t.members:
                found = self.as_signature(member)
                if found is not None:
                    return found
        return None

    # -- declarations ----------------------------------------------------

    def declaration_type(self, decl: Declaration) -> TsType:
        return self._memo(
            ("decl", decl.kind) + decl.key,
            lambda: self._compute_declaration_type(decl),
        )

    def _compute_declaration_type(self, decl: Declaration) -> TsType:
        unit = decl.unit
        if decl.kind == "variable":
            annotation = decl.node.child_by_field_name("type")
            value = decl.node.child_by_field_name("value")
            if annotation is not None:
                base = self.type_from_node(unit, annotation)
            elif value is not None:
                base = self.expression_type(unit, value)
                if not decl.const:
                    base = widen(base)
            else:
                base = ANY
            return self._apply_path(base, decl.path)
        if decl.kind == "parameter":
            types = self.parameter_types(unit, decl.function)
            base = types[decl.index] if decl.index < len(types) else ANY
            return self._apply_path(base, decl.path)
        if decl.kind == "for_of":
            if has_token(decl.node, "in"):
                return STRING
            iterable = self.expression_type(unit, decl.node.child_by_field_name("right"))
            return self._apply_path(self.element_type(iterable), decl.path)
        if decl.kind == "function":
            return self.function_signature(unit, decl.node)
        if decl.kind == "enum":
            return self._enum_members(decl, as_object=True)
        if decl.kind == "expression":
            return self.expression_type(unit, decl.node)
        return UNKNOWN

    def _apply_path(self, t: TsType, path: tuple) -> TsType:
        for step in path:
            if step[0] == "prop":
                t = self.property_type(t, step[1])
            elif step[0] == "index":
                t = self.indexed_access(t, Literal("number", str(step[1])))
            elif step[0] == "rest_index":
                t = ArrayOf(self.element_type(t))
        return t

    # -- functions -------------------------------------------------------

    def parameter_types(self, unit: SourceUnit, fn_node: Any) -> tuple[TsType, ...]:
        return self._memo(
            self._node_key("params", unit, fn_node),
            lambda: self._compute_parameter_types(unit, fn_node),
            fallback=(),
        )

    def _compute_parameter_types(self, unit: SourceUnit, fn_node: Any) -> tuple[TsType, ...]:
        params = function_parameters(fn_node)
        contextual = None
        if any(self._parameter_annotation(p) is None for p in params):
            context = self.contextual_type(unit, fn_node)
            contextual = self.as_signature(context) if context is not None else None

        result: list[TsType] = []
        for index, param in enumerate(params):
            annotation = self._parameter_annotation(param)
            if annotation is not None:
                result.append(self.type_from_node(unit, annotation))
            elif contextual is not None:
                result.append(self.contextual_parameter(contextual, index))
            else:
                default = param.child_by_field_name("value") if param.type != "identifier" else None
                result.append(widen(self.expression_type(unit, default)) if default is not None else ANY)
        return tuple(result)

    @staticmethod
    def _parameter_annotation(param: Any) -> Any:
        if param.type in ("required_parameter", "optional_parameter"):
            return param.child_by_field_name("type")
        return None

    def function_signature(self, unit: SourceUnit, fn_node: Any) -> TsType:
        return self._memo(
            self._node_key("sig", unit, fn_node),
            lambda: self._compute_function_signature(unit, fn_node),
        )

    def _compute_function_signature(self, unit: SourceUnit, fn_node: Any) -> FunctionSig:
        params = function_parameters(fn_node)
        types = self.parameter_types(unit, fn_node)
        sig_params: list[Param] = []
        for index, param in enumerate(params):
            pattern = parameter_pattern(param)
            rest = pattern is not None and pattern.type == "rest_pattern"
            name = unit.text(pattern).lstrip(".") if pattern is not None else f"arg{index}"
            optional = param.type == "optional_parameter" or (
                param.type != "identifier" and param.child_by_field_name("value") is not None
            )
            param_type = types[index] if index < len(types) else ANY
            sig_params.append(Param(name, param_type, optional, rest))
        return FunctionSig(
            tuple(sig_params),
            self._return_type(unit, fn_node),
            self._type_parameter_names(fn_node),
        )

    def _return_type(self, unit: SourceUnit, fn_node: Any) -> TsType:
        annotation = fn_node.child_by_field_name("return_type")
        if annotation is not None:
            return self.type_from_node(unit, annotation)
        body = fn_node.child_by_field_name("body")
        if body is None:
            return ANY
        if "generator" in fn_node.type or has_token(fn_node, "*"):
            return UNKNOWN

        if body.type == "statement_block":
            returned = [
                widen(self.expression_type(unit, expr)) if expr is not None else VOID
                for expr in iter_return_expressions(body)
            ]
            result = make_union(returned) if returned else VOID
        else:
            result = widen(self.expression_type(unit, body))

        if has_token(fn_node, "async"):
            return NamedRef("Promise", (self.awaited(result),))
        return result

    def _type_parameter_names(self, node: Any) -> tuple[str, ...]:
        type_parameters = node.child_by_field_name("type_parameters")
        if type_parameters is None:
            return ()
        names = []
        for param in type_parameters.named_children:
            if param.type != "type_parameter":
                continue
            name_node = param.child_by_field_name("name")
            if name_node is not None:
                names.append(name_node.text.decode("utf-8", errors="replace"))
        return tuple(names)

    # -- type annotations ------------------------------------------------

    def type_from_node(self, unit: SourceUnit, node: Any, env: dict[str, TsType] | None = None) -> TsType:
        """Type denoted by a type node; ``env`` binds type parameters by name."""
        if node is None:
            return UNKNOWN
        if env:
            return self._compute_type_node(unit, node, env)
        return self._memo(
            self._node_key("type", unit, node),
            lambda: self._compute_type_node(unit, node, {}),
        )

    def _compute_type_node(self, unit: SourceUnit, node: Any, env: dict[str, TsType]) -> TsType:
        kind = node.type
        named = [c for c in node.named_children if c.type != "comment"]
        recurse = lambda n: self.type_from_node(unit, n, env)  # noqa: E731

        if kind in (
            "type_annotation", "opting_type_annotation", "omitting_type_annotation",
            "parenthesized_type", "readonly_type", "default_type", "constraint",
        ):
            return recurse(named[0]) if named else UNKNOWN
        if kind in ("asserts_annotation", "type_predicate_annotation", "type_predicate"):
            return BOOLEAN
        if kind == "predefined_type":
            return Primitive(unit.text(node))
        if kind == "type_identifier":
            return self._resolve_type_name(unit, node, unit.text(node), (), env)
        if kind == "generic_type":
            name_node = node.child_by_field_name("name")
            arguments = node.child_by_field_name("type_arguments")
            args = tuple(
                recurse(c) for c in (arguments.named_children if arguments is not None else ())
                if c.type != "comment"
            )
            if name_node is not None and name_node.type == "nested_type_identifier":
                return self._qualified_type(unit, name_node, args)
            name = unit.text(name_node) if name_node is not None else ""
            return self._resolve_type_name(unit, node, name, args, env)
        if kind == "nested_type_identifier":
            return self._qualified_type(unit, node, ())
        if kind == "array_type":
            return ArrayOf(recurse(named[0])) if named else ArrayOf(UNKNOWN)
        if kind == "tuple_type":
            elements = []
            for child in named:
                inner = child.child_by_field_name("type")
                if child.type in ("optional_type", "rest_type") and child.named_children:
                    inner = child.named_children[0]
                elements.append(recurse(inner if inner is not None else child))
            return TupleOf(tuple(elements))
        if kind == "union_type":
            return make_union(recurse(c) for c in named)
        if kind == "intersection_type":
            return self._intersect([recurse(c) for c in named])
        if kind == "literal_type":
            return self._literal_type(unit, named[0]) if named else UNKNOWN
        if kind in ("object_type", "interface_body"):
            return self._members_shape(unit, named, env)
        if kind == "function_type":
            return self._function_type(unit, node, env)
        if kind == "type_query":
            return self._type_query(unit, named[0]) if named else UNKNOWN
        if kind == "index_type_query":
            target = self.properties_of(recurse(named[0])) if named else None
            if target is None:
                return STRING
            return make_union(_string_literal(p.name) for p in target.props)
        if kind == "lookup_type":
            if len(named) < 2:
                return UNKNOWN
            return self.indexed_access(recurse(named[0]), recurse(named[1]))
        if kind == "template_literal_type":
            return STRING
        if kind == "conditional_type":
            return self._conditional_type(unit, node, env)
        if kind == "infer_type":
            name_node = next((c for c in named if c.type == "type_identifier"), None)
            return env.get(unit.text(name_node), UNKNOWN) if name_node is not None else UNKNOWN
        if kind == "existential_type":
            return ANY
        return UNKNOWN

    def _literal_type(self, unit: SourceUnit, node: Any) -> TsType:
        if node.type == "string":
            return _string_literal(string_value(node, unit.source))
        if node.type == "number":
            return Literal("number", unit.text(node))
        if node.type in ("true", "false"):
            return Literal("boolean", node.type)
        if node.type == "null":
            return NULL
        if node.type == "undefined":
            return UNDEFINED
        if node.type == "unary_expression":
            return Literal("number", unit.text(node).replace(" ", ""))
        return UNKNOWN

    def _first_type_argument(self, unit: SourceUnit, node: Any) -> TsType:
        named = [c for c in node.named_children if c.type != "comment"]
        return self.type_from_node(unit, named[0]) if named else UNKNOWN

    def _resolve_type_name(
        self, unit: SourceUnit, node: Any, name: str, args: tuple[TsType, ...], env: dict[str, TsType]
    ) -> TsType:
        if name in env and not args:
            return env[name]
        if self._is_type_parameter_in_scope(unit, node, name):
            return TypeParamRef(name)
        decl = self.program.resolve_type(unit, name, node)
        if decl is not None:
            return self._named(decl, name, args)
        builtin = self.builtin_type(name, args)
        if builtin is not None:
            return builtin
        if name not in OPAQUE_GLOBALS:
            global_decl = self.program.global_type(name)
            if global_decl is not None:
                return self._named(global_decl, name, args)
        return NamedRef(name, args)

    @staticmethod
    def _named(decl: Declaration, name: str, args: tuple[TsType, ...]) -> TsType:
        if decl.kind in ("namespace", "module"):
            return UNKNOWN
        return NamedRef(name, args, decl, decl.key)

    def _is_type_parameter_in_scope(self, unit: SourceUnit, node: Any, name: str) -> bool:
        current = node.parent
        while current is not None:
            type_parameters = current.child_by_field_name("type_parameters")
            if type_parameters is not None:
                for param in type_parameters.named_children:
                    name_node = param.child_by_field_name("name") if param.type == "type_parameter" else None
                    if name_node is not None and unit.text(name_node) == name:
                        return True
            if current.type == "index_signature":
                clause = next((c for c in current.named_children if c.type == "mapped_type_clause"), None)
                clause_name = clause.child_by_field_name("name") if clause is not None else None
                if clause_name is not None and unit.text(clause_name) == name:
                    return True
            current = current.parent
        return False

    def _qualified_type(self, unit: SourceUnit, node: Any, args: tuple[TsType, ...]) -> TsType:
        module = node.child_by_field_name("module")
        name_node = node.child_by_field_name("name")
        if module is None or name_node is None:
            return UNKNOWN
        qualified = unit.text(node)
        container = self._namespace_of(unit, module)
        if container is None and module.type == "identifier":
            decl = self.program.resolve_type(unit, unit.text(module), node)
            container = decl if decl is not None and decl.kind in ("namespace", "module") else None
        if container is None:
            return NamedRef(qualified, args)
        member = self.program.member(container, unit.text(name_node), TYPE)
        if member is None:
            return NamedRef(qualified, args)
        return NamedRef(qualified, args, member, member.key)

    def _type_query(self, unit: SourceUnit, target: Any) -> TsType:
        if target.type == "identifier":
            return self._identifier_type(unit, target)
        if target.type == "member_expression":
            return self._member_type(unit, target)
        return UNKNOWN

    def _function_type(self, unit: SourceUnit, node: Any, env: dict[str, TsType]) -> FunctionSig:
        params_node = node.child_by_field_name("parameters")
        params: list[Param] = []
        for index, param in enumerate(params_node.named_children if params_node is not None else ()):
            if param.type not in ("required_parameter", "optional_parameter"):
                continue
            pattern = param.child_by_field_name("pattern")
            rest = pattern is not None and pattern.type == "rest_pattern"
            name = unit.text(pattern).lstrip(".") if pattern is not None else f"arg{index}"
            annotation = param.child_by_field_name("type")
            param_type = self.type_from_node(unit, annotation, env) if annotation is not None else ANY
            params.append(Param(name, param_type, param.type == "optional_parameter", rest))
        return_node = node.child_by_field_name("return_type")
        return FunctionSig(
            tuple(params),
            self.type_from_node(unit, return_node, env) if return_node is not None else ANY,
            self._type_parameter_names(node),
        )

    def _members_shape(self, unit: SourceUnit, members: list[Any], env: dict[str, TsType]) -> ObjectShape:
        props: dict[str, Prop] = {}
        string_index: TsType | None = None
        number_index: TsType | None = None
        calls: list[FunctionSig] = []

        for member in members:
            kind = member.type
            if kind == "property_signature":
                name = property_name(member.child_by_field_name("name"), unit.source)
                if name is None:
                    continue
                annotation = member.child_by_field_name("type")
                prop_type = self.type_from_node(unit, annotation, env) if annotation is not None else ANY
                props[name] = Prop(name, prop_type, has_token(member, "?"))
            elif kind in ("method_signature", "abstract_method_signature"):
                name = property_name(member.child_by_field_name("name"), unit.source)
                if name is not None:
                    props[name] = Prop(name, self._signature_node(unit, member, env), has_token(member, "?"))
            elif kind == "call_signature":
                calls.append(self._signature_node(unit, member, env))
            elif kind == "index_signature":
                clause = next((c for c in member.named_children if c.type == "mapped_type_clause"), None)
                value_node = member.child_by_field_name("type")
                if clause is not None:
                    mapped, mapped_index = self._mapped_members(unit, member, clause, value_node, env)
                    props.update(mapped)
                    if mapped_index is not None:
                        string_index = mapped_index
                    continue
                index_type = self.type_from_node(unit, member.child_by_field_name("index_type"), env)
                value_type = self.type_from_node(unit, value_node, env) if value_node is not None else ANY
                if index_type == NUMBER:
                    number_index = value_type
                else:
                    string_index = value_type
        return ObjectShape(tuple(props.values()), string_index, number_index, tuple(calls))

    def _mapped_members(
        self, unit: SourceUnit, member: Any, clause: Any, value_node: Any, env: dict[str, TsType]
    ) -> tuple[dict[str, Prop], TsType | None]:
        key_node = clause.child_by_field_name("name")
        keys = self.type_from_node(unit, clause.child_by_field_name("type"), env)
        key_name = unit.text(key_node) if key_node is not None else ""
        tokens = [c.type for c in member.children if not c.is_named]
        optional = "?" in tokens and "-" not in tokens and "-?" not in tokens
        props: dict[str, Prop] = {}
        index: TsType | None = None
        for key in keys.members if isinstance(keys, Union) else (keys,):
            scoped = {**env, key_name: key}
            if isinstance(key, Literal):
                value = self.type_from_node(unit, value_node, scoped) if value_node is not None else ANY
                props[_literal_value(key)] = Prop(_literal_value(key), value, optional)
            elif key in (STRING, ANY):
                index = self.type_from_node(unit, value_node, scoped) if value_node is not None else ANY
        return props, index

    def _signature_node(self, unit: SourceUnit, node: Any, env: dict[str, TsType]) -> FunctionSig:
        params_node = node.child_by_field_name("parameters")
        params: list[Param] = []
        for index, param in enumerate(params_node.named_children if params_node is not None else ()):
            if param.type not in ("required_parameter", "optional_parameter"):
                continue
            pattern = param.child_by_field_name("pattern")
            rest = pattern is not None and pattern.type == "rest_pattern"
            name = unit.text(pattern).lstrip(".") if pattern is not None else f"arg{index}"
            annotation = param.child_by_field_name("type")
            param_type = self.type_from_node(unit, annotation, env) if annotation is not None else ANY
            params.append(Param(name, param_type, param.type == "optional_parameter", rest))
        return_node = node.child_by_field_name("return_type")
        return FunctionSig(
            tuple(params),
            self.type_from_node(unit, return_node, env) if return_node is not None else ANY,
            self._type_parameter_names(node),
        )

    def _conditional_type(self, unit: SourceUnit, node: Any, env: dict[str, TsType]) -> TsType:
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        consequence = node.child_by_field_name("consequence")
        alternative = node.child_by_field_name("alternative")
        if left is None or right is None:
            return UNKNOWN

        if left.type == "type_identifier" and unit.text(left) in env:
            checked = env[unit.text(left)]
            if isinstance(checked, Union):
                return make_union(
                    self._conditional_type(unit, node, {**env, unit.text(left): m})
                    for m in checked.members
                )

        check = self.type_from_node(unit, left, env)
        infer_names = [
            unit.text(c.named_children[0])
            for c in _descendants(right)
            if c.type == "infer_type" and c.named_children
        ]
        scoped = {**env, **{n: TypeParamRef(n) for n in infer_names}}
        extends = self.type_from_node(unit, right, scoped)
        bindings: dict[str, TsType] = {}
        if infer_names:
            self._unify(extends, check, bindings, set(infer_names))
            extends = substitute(extends, bindings)
        if mentions_type_params(check) or mentions_type_params(extends):
            return UNKNOWN
        if self.is_assignable(check, extends):
            branch_env = {**env, **{n: bindings.get(n, UNKNOWN) for n in infer_names}}
            return self.type_from_node(unit, consequence, branch_env)
        return self.type_from_node(unit, alternative, env)

    # -- structure -------------------------------------------------------

    def builtin_type(self, name: str, args: tuple[TsType, ...]) -> TsType | None:
        """Evaluate a built-in generic; None when ``name`` is not one."""

        def arg(i: int) -> TsType:
            return args[i] if i < len(args) else UNKNOWN

        if name in ("Array", "ReadonlyArray"):
            return ArrayOf(arg(0))
        if name not in UTILITY_TYPES:
            return None
        if any(mentions_type_params(a) for a in args):
            return NamedRef(name, args)

        if name in ("Uppercase", "Lowercase", "Capitalize", "Uncapitalize"):
            return STRING
        if name == "NonNullable":
            return remove_nullish(arg(0))
        if name == "Awaited":
            return self.awaited(arg(0))
        if name in ("Exclude", "Extract"):
            source = self.resolve_structure(arg(0))
            members = source.members if isinstance(source, Union) else (source,)
            keep = name == "Extract"
            return make_union(m for m in members if self.is_assignable(m, arg(1)) == keep)
        if name == "ReturnType":
            signature = self.as_signature(arg(0))
            return signature.return_type if signature is not None else UNKNOWN
        if name == "Parameters":
            signature = self.as_signature(arg(0))
            return TupleOf(tuple(p.type for p in signature.params)) if signature is not None else UNKNOWN
        if name == "Record":
            keys = self.resolve_structure(arg(0))
            value = arg(1)
            members = keys.members if isinstance(keys, Union) else (keys,)
            props = tuple(
                Prop(_literal_value(k), value) for k in members if isinstance(k, Literal)
            )
            string_index = value if any(k in (STRING, ANY) for k in members) else None
            number_index = value if NUMBER in members else None
            return ObjectShape(props, string_index, number_index)

        shape = self.properties_of(arg(0))
        if shape is None:
            return UNKNOWN
        if name == "Partial":
            return ObjectShape(
                tuple(Prop(p.name, p.type, True) for p in shape.props),
                shape.string_index, shape.number_index, shape.call_signatures,
            )
        if name == "Required":
            return ObjectShape(
                tuple(Prop(p.name, remove_nullish(p.type) if p.optional else p.type) for p in shape.props),
                shape.string_index, shape.number_index, shape.call_signatures,
            )
        if name == "Readonly":
            return shape
        keys = self.resolve_structure(arg(1))
        key_names = {
            _literal_value(k) for k in (keys.members if isinstance(keys, Union) else (keys,))
            if isinstance(k, Literal)
        }
        if name == "Pick":
            return ObjectShape(tuple(p for p in shape.props if p.name in key_names))
        if name == "Omit":
            return ObjectShape(
                tuple(p for p in shape.props if p.name not in key_names),
                shape.string_index, shape.number_index,
            )
        return None

    def expand(self, t: NamedRef) -> TsType:
        """One level of expansion of a named type; ``t`` itself when opaque."""
        if t.declaration is None:
            if t.name in UTILITY_TYPES:
                evaluated = self.builtin_type(t.name, t.args)
                return evaluated if evaluated is not None else t
            return t
        return self._memo(("expand", t), lambda: self._compute_expand(t), fallback=t)

    def _compute_expand(self, t: NamedRef) -> TsType:
        decl: Declaration = t.declaration
        env = self._bind_type_arguments(decl, t.args)
        if decl.kind == "type_alias":
            value = decl.node.child_by_field_name("value")
            return self.type_from_node(decl.unit, value, env) if value is not None else UNKNOWN
        if decl.kind == "interface":
            return self._interface_shape(decl, env)
        if decl.kind == "class":
            return self._class_shape(decl, env)
        if decl.kind == "enum":
            return self._enum_members(decl, as_object=False)
        return UNKNOWN

    def resolve_structure(self, t: TsType) -> TsType:
        """Expand named references until a structural type (or an opaque name) remains."""
        for _ in range(MAX_EXPANSION_STEPS):
            if not isinstance(t, NamedRef):
                return t
            expanded = self.expand(t)
            if expanded == t:
                return t
            t = expanded
        return t

    def _bind_type_arguments(self, decl: Declaration, args: tuple[TsType, ...]) -> dict[str, TsType]:
        env: dict[str, TsType] = {}
        type_parameters = decl.node.child_by_field_name("type_parameters")
        if type_parameters is None:
            return env
        params = [p for p in type_parameters.named_children if p.type == "type_parameter"]
        for index, param in enumerate(params):
            name_node = param.child_by_field_name("name")
            if name_node is None:
                continue
            name = decl.unit.text(name_node)
            if index < len(args):
                env[name] = args[index]
                continue
            default = param.child_by_field_name("value")
            env[name] = self.type_from_node(decl.unit, default, env) if default is not None else UNKNOWN
        return env

    def _interface_shape(self, decl: Declaration, env: dict[str, TsType]) -> ObjectShape:
        props: dict[str, Prop] = {}
        string_index = number_index = None
        calls: list[FunctionSig] = []

        def merge(shape: ObjectShape | None) -> None:
            nonlocal string_index, number_index
            if shape is None:
                return
            for prop in shape.props:
                props[prop.name] = prop
            string_index = shape.string_index or string_index
            number_index = shape.number_index or number_index
            calls.extend(shape.call_signatures)

        for node in [decl.node, *decl.extra_nodes]:
            for child in node.named_children:
                if child.type == "extends_type_clause":
                    for base in child.named_children:
                        merge(self.properties_of(self.type_from_node(decl.unit, base, env)))
            body = node.child_by_field_name("body")
            if body is not None:
                merge(self._members_shape(decl.unit, [c for c in body.named_children], env))
        return ObjectShape(tuple(props.values()), string_index, number_index, tuple(calls))

    def _class_shape(self, decl: Declaration, env: dict[str, TsType]) -> ObjectShape:
        unit = decl.unit
        props: dict[str, Prop] = {}

        heritage = next((c for c in decl.node.named_children if c.type == "class_heritage"), None)
        extends = next(
            (c for c in heritage.named_children if c.type == "extends_clause"), None
        ) if heritage is not None else None
        if extends is not None:
            base_node = extends.child_by_field_name("value")
            base_args_node = extends.child_by_field_name("type_arguments")
            if base_node is not None and base_node.type == "identifier":
                base_decl = self.program.resolve_value(unit, unit.text(base_node), base_node)
                if base_decl is not None and base_decl.kind == "class":
                    base_args = tuple(
                        self.type_from_node(unit, c, env)
                        for c in (base_args_node.named_children if base_args_node is not None else ())
                    )
                    base_shape = self.properties_of(
                        NamedRef(base_decl.name, base_args, base_decl, base_decl.key)
                    )
                    if base_shape is not None:
                        for prop in base_shape.props:
                            props[prop.name] = prop

        body = decl.node.child_by_field_name("body")
        for member in body.named_children if body is not None else ():
            if has_token(member, "static"):
                continue
            if member.type == "public_field_definition":
                name = property_name(member.child_by_field_name("name"), unit.source)
                if name is None:
                    continue
                annotation = member.child_by_field_name("type")
                value = member.child_by_field_name("value")
                if annotation is not None:
                    field_type = self.type_from_node(unit, annotation, env)
                elif value is not None:
                    field_type = substitute(widen(self.expression_type(unit, value)), env)
                else:
                    field_type = ANY
                props[name] = Prop(name, field_type, has_token(member, "?"))
            elif member.type in ("method_definition", "method_signature", "abstract_method_signature"):
                name = property_name(member.child_by_field_name("name"), unit.source)
                if name is None or has_token(member, "set"):
                    continue
                if name == "constructor":
                    self._parameter_properties(unit, member, env, props)
                    continue
                signature = substitute(self.function_signature(unit, member), env)
                if has_token(member, "get") and isinstance(signature, FunctionSig):
                    props[name] = Prop(name, signature.return_type)
                else:
                    props[name] = Prop(name, signature, has_token(member, "?"))
        return ObjectShape(tuple(props.values()))

    def _parameter_properties(
        self, unit: SourceUnit, constructor: Any, env: dict[str, TsType], props: dict[str, Prop]
    ) -> None:
        for param in function_parameters(constructor):
            modifiers = {c.type for c in param.children}
            if not modifiers & {"accessibility_modifier", "readonly", "override_modifier"}:
                continue
            pattern = param.child_by_field_name("pattern")
            if pattern is None or pattern.type != "identifier":
                continue
            annotation = param.child_by_field_name("type")
            param_type = self.type_from_node(unit, annotation, env) if annotation is not None else ANY
            props[unit.text(pattern)] = Prop(unit.text(pattern), param_type)

    def _enum_members(self, decl: Declaration, as_object: bool) -> TsType:
        body = decl.node.child_by_field_name("body")
        members: list[tuple[str, TsType]] = []
        for member in body.named_children if body is not None else ():
            if member.type == "enum_assignment":
                name = property_name(member.child_by_field_name("name"), decl.unit.source)
                value = member.child_by_field_name("value")
                if value is not None and value.type == "string":
                    member_type: TsType = _string_literal(string_value(value, decl.unit.source))
                else:
                    member_type = NUMBER
            elif member.type in ("property_identifier", "string"):
                name = property_name(member, decl.unit.source)
                member_type = NUMBER
            else:
                continue
            if name is not None:
                members.append((name, member_type))
        if as_object:
            return ObjectShape(tuple(Prop(n, t) for n, t in members))
        return make_union(t for _, t in members)

    def properties_of(self, t: TsType) -> ObjectShape | None:
        """Object view of ``t``: its properties, index and call signatures."""
        t = self.resolve_structure(t)
        if isinstance(t, ObjectShape):
            return t
        if isinstance(t, FunctionSig):
            return ObjectShape(call_signatures=(t,))
        if isinstance(t, Intersection):
            props: dict[str, Prop] = {}
            found = False
            for member in t.members:
                shape = self.properties_of(member)
                if shape is None:
                    continue
                found = True
                for prop in shape.props:
                    props[prop.name] = prop
            return ObjectShape(tuple(props.values())) if found else None
        return None

    def _intersect(self, members: list[TsType]) -> TsType:
        if len(members) == 1:
            return members[0]
        if any(mentions_type_params(m) for m in members):
            return Intersection(tuple(members))
        shapes = [self.properties_of(m) for m in members]
        if all(s is not None for s in shapes):
            props: dict[str, Prop] = {}
            for shape in shapes:
                for prop in shape.props:
                    props[prop.name] = prop
            return ObjectShape(tuple(props.values()))
        return Intersection(tuple(members))

    def property_type(self, t: TsType, name: str) -> TsType:
        """Type of ``t.name``; optional properties include ``undefined``."""
        t = self.resolve_structure(t)
        if t == ANY:
            return ANY
        if isinstance(t, Union):
            return make_union(
                self.property_type(m, name) for m in t.members if m not in (NULL, UNDEFINED)
            )
        if isinstance(t, ArrayOf):
            return self._array_member(t.element, name)
        if isinstance(t, TupleOf):
            return self._array_member(make_union(t.elements), name)
        if t == STRING or (isinstance(t, Literal) and t.base == "string"):
            return NUMBER if name == "length" else (
                _method(_STRING_METHODS[name]) if name in _STRING_METHODS else UNKNOWN
            )
        if t == NUMBER or (isinstance(t, Literal) and t.base == "number"):
            return _method(_NUMBER_METHODS[name]) if name in _NUMBER_METHODS else UNKNOWN
        if isinstance(t, NamedRef):
            return self._builtin_member(t, name)
        shape = self.properties_of(t)
        if shape is None:
            return UNKNOWN
        prop = shape.prop(name)
        if prop is not None:
            return make_union([prop.type, UNDEFINED]) if prop.optional else prop.type
        if shape.string_index is not None:
            return shape.string_index
        return UNKNOWN

    def _array_member(self, element: TsType, name: str) -> TsType:
        u = TypeParamRef("U")

        def callback(returns: TsType) -> FunctionSig:
            return FunctionSig(
                (Param("value", element), Param("index", NUMBER), Param("array", ArrayOf(element))),
                returns,
            )

        if name == "length":
            return NUMBER
        if name in ("map", "flatMap"):
            return FunctionSig((Param("callbackfn", callback(u)),), ArrayOf(u), ("U",))
        if name == "filter":
            return FunctionSig((Param("predicate", callback(UNKNOWN)),), ArrayOf(element))
        if name in ("find", "findLast"):
            return FunctionSig((Param("predicate", callback(UNKNOWN)),), make_union([element, UNDEFINED]))
        if name == "forEach":
            return FunctionSig((Param("callbackfn", callback(UNKNOWN)),), VOID)
        if name in ("some", "every"):
            return FunctionSig((Param("predicate", callback(UNKNOWN)),), BOOLEAN)
        if name == "reduce":
            reducer = FunctionSig(
                (Param("previousValue", u), Param("currentValue", element), Param("currentIndex", NUMBER)),
                u,
            )
            return FunctionSig((Param("callbackfn", reducer), Param("initialValue", u)), u, ("U",))
        if name in ("findIndex", "findLastIndex", "indexOf", "lastIndexOf", "push", "unshift"):
            return _method(NUMBER)
        if name == "includes":
            return _method(BOOLEAN)
        if name == "join":
            return _method(STRING)
        if name in ("slice", "concat", "sort", "reverse", "toSorted", "toReversed", "splice"):
            return _method(ArrayOf(element))
        if name in ("at", "pop", "shift"):
            return _method(make_union([element, UNDEFINED]))
        if name == "flat":
            return _method(ArrayOf(self.element_type(element) if isinstance(element, ArrayOf) else element))
        return UNKNOWN

    def _builtin_member(self, t: NamedRef, name: str) -> TsType:
        if t.name == "Date":
            if name in _DATE_STRING_METHODS:
                return _method(STRING)
            return _method(NUMBER) if name.startswith(("get", "set")) or name == "valueOf" else UNKNOWN
        if t.name in ("Map", "ReadonlyMap"):
            value = t.args[1] if len(t.args) > 1 else UNKNOWN
            if name == "get":
                return _method(make_union([value, UNDEFINED]))
            if name in ("has", "delete"):
                return _method(BOOLEAN)
            if name == "set":
                return _method(t)
            if name == "size":
                return NUMBER
        if t.name in ("Set", "ReadonlySet"):
            if name in ("has", "delete"):
                return _method(BOOLEAN)
            if name == "add":
                return _method(t)
            if name == "size":
                return NUMBER
        return UNKNOWN

    def element_type(self, t: TsType) -> TsType:
        """Element type when iterating ``t``."""
        t = self.resolve_structure(t)
        if isinstance(t, ArrayOf):
            return t.element
        if isinstance(t, TupleOf):
            return make_union(t.elements)
        if isinstance(t, Union):
            return make_union(self.element_type(m) for m in t.members if m not in (NULL, UNDEFINED))
        if isinstance(t, NamedRef) and t.name in ("Set", "ReadonlySet", "Iterable", "AsyncIterable") and t.args:
            return t.args[0]
        if isinstance(t, NamedRef) and t.name in ("Map", "ReadonlyMap") and len(t.args) > 1:
            return TupleOf((t.args[0], t.args[1]))
        if t == STRING:
            return STRING
        if t == ANY:
            return ANY
        return UNKNOWN

    def indexed_access(self, obj: TsType, index: TsType) -> TsType:
        if isinstance(index, Union):
            return make_union(self.indexed_access(obj, m) for m in index.members)
        obj = self.resolve_structure(obj)
        if isinstance(obj, Union):
            return make_union(self.indexed_access(m, index) for m in obj.members)
        if isinstance(index, Literal) and index.base == "string":
            return self.property_type(obj, _literal_value(index))
        if isinstance(obj, ArrayOf) and (index == NUMBER or isinstance(index, Literal)):
            return obj.element
        if isinstance(obj, TupleOf):
            if isinstance(index, Literal) and index.base == "number":
                try:
                    position = int(index.text)
                except ValueError:
                    return make_union(obj.elements)
                return obj.elements[position] if 0 <= position < len(obj.elements) else UNDEFINED
            return make_union(obj.elements)
        shape = self.properties_of(obj)
        if shape is None:
            return ANY if obj == ANY else UNKNOWN
        if index == NUMBER or (isinstance(index, Literal) and index.base == "number"):
            return shape.number_index or shape.string_index or UNKNOWN
        if index == STRING:
            return shape.string_index or UNKNOWN
        return UNKNOWN

    def awaited(self, t: TsType) -> TsType:
        """The value a promise-like type settles to (``t`` itself otherwise)."""
        for _ in range(MAX_EXPANSION_STEPS):
            if isinstance(t, Union):
                return make_union(self.awaited(m) for m in t.members)
            if isinstance(t, NamedRef) and is_promise_name(t.name):
                t = t.args[0] if t.args else UNKNOWN
                continue
            return t
        return t

    # -- relations -------------------------------------------------------

    def is_assignable(self, source: TsType, target: TsType) -> bool:
        if target in (ANY, UNKNOWN) or source in (ANY, NEVER) or source == target:
            return True
        if isinstance(source, Union):
            return all(self.is_assignable(m, target) for m in source.members)
        if isinstance(target, Union):
            return any(self.is_assignable(source, m) for m in target.members)
        if isinstance(source, Literal):
            return target == Primitive(source.base)
        if source in (NULL, UNDEFINED) or target in (NULL, UNDEFINED):
            return False
        source = self.resolve_structure(source)
        target = self.resolve_structure(target)
        if source == target:
            return True
        if isinstance(source, NamedRef) and isinstance(target, NamedRef):
            return source.name == target.name and all(
                self.is_assignable(s, t) for s, t in zip(source.args, target.args)
            )
        if isinstance(target, ArrayOf):
            return isinstance(source, ArrayOf) and self.is_assignable(source.element, target.element)
        if isinstance(target, FunctionSig):
            return self.as_signature(source) is not None
        if target == Primitive("object"):
            return isinstance(source, (ObjectShape, ArrayOf, TupleOf, FunctionSig, NamedRef))
        if isinstance(target, ObjectShape):
            if isinstance(source, (Primitive, Literal)):
                return False
            shape = self.properties_of(source)
            if shape is None:
                return False
            for prop in target.props:
                own = shape.prop(prop.name)
                if own is None:
                    if not prop.optional:
                        return False
                    continue
                if not self.is_assignable(own.type, prop.type):
                    return False
            return True
        return False

    def _unify(
        self,
        param: TsType,
        arg: TsType,
        bindings: dict[str, TsType],
        names: set[str],
        depth: int = 0,
    ) -> None:
        """Bind type parameters in ``param`` from the argument type ``arg``."""
        if depth > MAX_UNIFY_DEPTH or arg in (UNKNOWN, ANY, NEVER):
            return
        if isinstance(param, TypeParamRef):
            if param.name in names and param.name not in bindings:
                bindings[param.name] = widen(arg)
            return
        if isinstance(param, Union):
            naked = [m for m in param.members if isinstance(m, TypeParamRef) and m.name in names]
            for other in param.members:
                if other not in naked and self._same_kind(other, arg):
                    self._unify(other, arg, bindings, names, depth + 1)
                    return
            for member in naked:
                self._unify(member, arg, bindings, names, depth + 1)
            return
        if isinstance(arg, Union):
            matching = [m for m in arg.members if self._same_kind(param, m)]
            if isinstance(param, ArrayOf) and matching:
                self._unify(param.element, make_union(self.element_type(m) for m in matching), bindings, names, depth + 1)
                return
            for member in matching:
                self._unify(param, member, bindings, names, depth + 1)
            return
        if isinstance(param, NamedRef):
            if isinstance(arg, NamedRef) and arg.name == param.name:
                for p, a in zip(param.args, arg.args):
                    self._unify(p, a, bindings, names, depth + 1)
                return
            if param.declaration is not None:
                self._unify(self.expand(param), arg, bindings, names, depth + 1)
            return
        if isinstance(param, ArrayOf):
            resolved = self.resolve_structure(arg)
            if isinstance(resolved, (ArrayOf, TupleOf)):
                self._unify(param.element, self.element_type(resolved), bindings, names, depth + 1)
            return
        if isinstance(param, FunctionSig):
            signature = self.as_signature(arg)
            if signature is None:
                return
            for p, a in zip(param.params, signature.params):
                self._unify(p.type, a.type, bindings, names, depth + 1)
            self._unify(param.return_type, signature.return_type, bindings, names, depth + 1)
            return
        if isinstance(param, ObjectShape):
            shape = self.properties_of(arg)
            if shape is None:
                return
            for prop in param.props:
                own = shape.prop(prop.name)
                if own is not None:
                    self._unify(prop.type, own.type, bindings, names, depth + 1)
            return

    def _same_kind(self, param: TsType, arg: TsType) -> bool:
        if isinstance(param, NamedRef):
            return isinstance(arg, NamedRef) and arg.name == param.name
        if isinstance(param, ArrayOf):
            return isinstance(self.resolve_structure(arg), (ArrayOf, TupleOf))
        if isinstance(param, FunctionSig):
            return self.as_signature(arg) is not None
        if isinstance(param, ObjectShape):
            return isinstance(self.resolve_structure(arg), ObjectShape)
        return param == arg


def _descendants(node: Any):
    stack = list(node.children)
    while stack:
        current = stack.pop()
        yield current
        stack.extend(current.children)
