"""
Query compilation: filtering, searching, projection and population

The list and get-by-id operations build one QuerySpec per request.
The predicates are store independent, the document store translates them
(cfr. SQLAStore.where).

Filtering (`filter[<field>]=<value>`, `filter[<field>][<op>]=<value>`) and searching
(`search=<keyword>&searchFields=<f1,f2>&caseSensitive=true`) only ever reference
allow-listed fields, the other fields are dropped silently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

import docrud
from .settings import FilterConfig, PopulateSpec, SearchConfig, Settings

RANGE_OPERATORS = ("gte", "lte", "gt", "lt")


@dataclass(frozen=True)
class Eq:
    field: str
    value: Any


@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Range:
    field: str
    # (operator, value) pairs, operator is one of RANGE_OPERATORS
    bounds: Tuple[Tuple[str, Any], ...]


@dataclass(frozen=True)
class Match:
    """Substring match of a keyword, the keyword is not interpreted as a pattern"""

    field: str
    keyword: str
    case_sensitive: bool = False


@dataclass(frozen=True)
class And:
    clauses: Tuple["Predicate", ...]


@dataclass(frozen=True)
class Or:
    clauses: Tuple["Predicate", ...]


Predicate = Union[Eq, In, Range, Match, And, Or]


@dataclass(frozen=True)
class SearchExpression:
    keyword: str
    case_sensitive: bool
    fields: Tuple[str, ...]


@dataclass(frozen=True)
class QuerySpec:
    """
    :param predicate: None when all documents match
    :param fields: projection, empty for the full document
    :param populate: relationships to expand
    """

    predicate: Optional[Predicate] = None
    fields: Tuple[str, ...] = ()
    populate: Tuple[PopulateSpec, ...] = ()


def compile_filter(filter_args: Optional[Mapping[str, Any]], config: FilterConfig) -> Optional[And]:
    """
    :param filter_args: parsed filter query arguments, eg. {"age": {"gte": "18"}, "role": ["admin", "dev"]}
    :param config: filter allow-list
    :return: the AND'ed field predicates or None if no field is allowed
    """
    predicates = []
    for field_name, value in (filter_args or {}).items():
        if field_name not in config.allowed_fields:
            docrud.log.debug(f'Filtering on "{field_name}" is not allowed')
            continue
        if isinstance(value, Mapping):
            bounds = tuple((op, value[op]) for op in RANGE_OPERATORS if op in value)
            ignored = [op for op in value if op not in RANGE_OPERATORS]
            if ignored:
                docrud.log.debug(f'Ignoring filter operators {ignored} for "{field_name}"')
            if bounds:
                predicates.append(Range(field_name, bounds))
        elif isinstance(value, (list, tuple)):
            predicates.append(In(field_name, tuple(value)))
        else:
            predicates.append(Eq(field_name, value))

    if not predicates:
        return None
    return And(tuple(predicates))


def resolve_search_fields(search_fields: Optional[Iterable[str]], config: SearchConfig) -> Tuple[str, ...]:
    """
    :param search_fields: fields requested by the client
    :param config: search allow-list
    :return: requested fields that are allowed, all allowed fields if none were requested
    """
    requested = [field_name for field_name in (search_fields or []) if field_name]
    if requested and config.allowed_fields:
        return tuple(field_name for field_name in config.allowed_fields if field_name in requested)
    return config.allowed_fields


def parse_search(
    keyword: Optional[str], case_sensitive: bool, search_fields: Optional[Iterable[str]], config: SearchConfig
) -> Optional[SearchExpression]:
    if config.disabled or not keyword or not keyword.strip():
        return None
    fields = resolve_search_fields(search_fields, config)
    if not fields:
        docrud.log.warning(f'No searchable fields for "{keyword}", search skipped')
        return None
    return SearchExpression(keyword=keyword, case_sensitive=bool(case_sensitive), fields=fields)


def compile_search(
    keyword: Optional[str], case_sensitive: bool, search_fields: Optional[Iterable[str]], config: SearchConfig
) -> Optional[Or]:
    """
    :return: the OR'ed match predicates of the search fields, or None if the search is skipped
    """
    expression = parse_search(keyword, case_sensitive, search_fields, config)
    if expression is None:
        return None
    return Or(tuple(Match(field_name, expression.keyword, expression.case_sensitive) for field_name in expression.fields))


def combine(*predicates: Optional[Predicate]) -> Optional[Predicate]:
    """
    AND the given predicates, None predicates are left out
    """
    clauses = tuple(predicate for predicate in predicates if predicate is not None)
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return And(clauses)


def build_list_query(
    settings: Settings,
    filter_args: Optional[Mapping[str, Any]] = None,
    keyword: Optional[str] = None,
    case_sensitive: bool = False,
    search_fields: Optional[Iterable[str]] = None,
) -> QuerySpec:
    predicate = combine(
        compile_filter(filter_args, settings.list.filter),
        compile_search(keyword, case_sensitive, search_fields, settings.list.search),
    )
    return QuerySpec(predicate=predicate, fields=settings.list_fields, populate=settings.list.populate)


def build_get_by_id_query(settings: Settings) -> QuerySpec:
    return QuerySpec(fields=settings.get_by_id_fields, populate=settings.get_by_id.populate)
