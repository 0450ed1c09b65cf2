"""
Resolver map conversion.

Applications export resolvers either as a list of Ariadne bindables or as
a map ``{"TypeName": {"field": resolver}}``. Map entries are turned into
the bindable matching the type's kind in the composed schema; values that
are already bindables (``ScalarType``, ``ObjectType``...) pass through.
"""

from typing import Any, Callable, Dict, List, Mapping

from ariadne import EnumType, InterfaceType, ObjectType, UnionType
from graphql import GraphQLEnumType, GraphQLInterfaceType, GraphQLSchema, GraphQLUnionType

from shared.errors import StartupFailure

TYPE_RESOLVER_KEY = "__resolveType"


def _is_bindable(value: Any) -> bool:
    return callable(getattr(value, "bind_to_schema", None))


def _with_fields(bindable, fields: Mapping[str, Callable]):
    for name, resolver in fields.items():
        if name == TYPE_RESOLVER_KEY:
            continue
        if not callable(resolver):
            raise StartupFailure(
                f"Resolver for {bindable.name}.{name} is not callable",
                {"type": bindable.name, "field": name},
            )
        bindable.set_field(name, resolver)
    return bindable


def _bindable_for(type_name: str, fields: Mapping[str, Any], schema: GraphQLSchema):
    graphql_type = schema.type_map.get(type_name)
    if graphql_type is None:
        raise StartupFailure(
            f"Resolvers defined for type {type_name} which is not in the schema",
            {"type": type_name},
        )

    if isinstance(graphql_type, GraphQLEnumType):
        return EnumType(type_name, dict(fields))
    if isinstance(graphql_type, GraphQLInterfaceType):
        return _with_fields(InterfaceType(type_name, fields.get(TYPE_RESOLVER_KEY)), fields)
    if isinstance(graphql_type, GraphQLUnionType):
        return UnionType(type_name, fields.get(TYPE_RESOLVER_KEY))
    return _with_fields(ObjectType(type_name), fields)


def to_bindables(resolvers: Any, schema: GraphQLSchema) -> List[Any]:
    """Normalize an exported resolver map into Ariadne bindables."""
    if resolvers is None:
        return []

    if isinstance(resolvers, (list, tuple)):
        invalid = [r for r in resolvers if not _is_bindable(r)]
        if invalid:
            raise StartupFailure("Resolver list contains objects that cannot bind to a schema")
        return list(resolvers)

    if _is_bindable(resolvers):
        return [resolvers]

    if not isinstance(resolvers, Mapping):
        raise StartupFailure(
            "Resolvers must be a mapping of type names or a list of bindables",
            {"type": type(resolvers).__name__},
        )

    bindables: List[Any] = []
    for type_name, value in resolvers.items():
        if _is_bindable(value):
            bindables.append(value)
        elif isinstance(value, Mapping):
            bindables.append(_bindable_for(type_name, value, schema))
        else:
            raise StartupFailure(
                f"Unsupported resolver entry for {type_name}",
                {"type": type_name},
            )
    return bindables


def describe(resolvers: Any) -> Dict[str, int]:
    """Field counts per type, for logging."""
    if isinstance(resolvers, Mapping):
        return {
            name: len(value) if isinstance(value, Mapping) else 1
            for name, value in resolvers.items()
        }
    return {}
