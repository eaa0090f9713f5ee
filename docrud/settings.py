"""Resource-level docrud settings.

The settings of an exposed resource are resolved once, when the resource is registered.
Resource descriptors may use the nested ``settings`` mapping:

    {
        "list": {
            "keys": ["firstName", "department"],
            "populate": [{"path": "department", "select": ["name"]}],
            "filter": {"allowed_fields": ["age", "role"]},
            "search": {"disabled": False, "allowed_fields": ["firstName", "lastName"]},
        },
        "get_by_id": {"keys": [...], "populate": [...]},
    }

For backwards compatibility the deprecated flat ``list_fields`` / ``get_by_id_fields``
descriptor arguments and the legacy ``"get"`` section name are resolved into the same
configuration object. The nested keys take precedence.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field, replace
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Tuple

import docrud
from .config import get_int_config
from .errors import SystemValidationError

SETTINGS_SECTIONS = {"list", "get", "get_by_id"}
LIST_SECTION_KEYS = {"keys", "populate", "filter", "search"}
GET_BY_ID_SECTION_KEYS = {"keys", "populate"}
POPULATE_KEYS = {"path", "select", "populate"}


@dataclass(frozen=True)
class PopulateSpec:
    """A relationship to expand into embedded documents.

    ``select`` restricts the fields of the related documents (empty: all fields),
    ``populate`` expands relationships of the related documents.
    """

    path: str
    select: Tuple[str, ...] = ()
    populate: Tuple["PopulateSpec", ...] = ()

    @property
    def depth(self) -> int:
        return 1 + max((nested.depth for nested in self.populate), default=0)


@dataclass(frozen=True)
class FilterConfig:
    allowed_fields: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class SearchConfig:
    disabled: bool = False
    # a tuple, the OR'ed match expressions are generated in this order
    allowed_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ListSettings:
    populate: Tuple[PopulateSpec, ...] = ()
    filter: FilterConfig = field(default_factory=FilterConfig)
    search: SearchConfig = field(default_factory=SearchConfig)


@dataclass(frozen=True)
class GetByIdSettings:
    populate: Tuple[PopulateSpec, ...] = ()


@dataclass(frozen=True)
class Settings:
    """Canonical settings of an exposed resource.

    Instances are immutable: they're shared by all requests to the resource.
    An empty field tuple means the documents are returned unprojected.
    """

    list_fields: Tuple[str, ...] = ()
    get_by_id_fields: Tuple[str, ...] = ()
    primary_key: Optional[str] = None
    list: ListSettings = field(default_factory=ListSettings)
    get_by_id: GetByIdSettings = field(default_factory=GetByIdSettings)


def _deprecated(old: str, new: str) -> None:
    message = f'"{old}" is deprecated, use {new} instead'
    docrud.log.warning(message)
    warnings.warn(message, DeprecationWarning, stacklevel=3)


def _field_names(value: Any, name: str) -> Tuple[str, ...]:
    """
    :param value: None, a list of field names or a comma/space separated string
    :param name: setting name, used in the error message
    :return: tuple of field names
    """
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(item for item in value.replace(",", " ").split() if item)
    if isinstance(value, (list, tuple, set, frozenset)) and all(isinstance(item, str) for item in value):
        # sets have no order, sort them to keep the generated queries deterministic
        items = sorted(value) if isinstance(value, (set, frozenset)) else value
        return tuple(items)
    raise SystemValidationError(f'Invalid "{name}" setting: {value!r}, expected a list of field names')


def _section(settings: Mapping[str, Any], name: str, allowed: Iterable[str]) -> Mapping[str, Any]:
    section = settings.get(name) or {}
    if not isinstance(section, Mapping):
        raise SystemValidationError(f'Invalid "{name}" settings: {section!r}')
    unknown = set(section) - set(allowed)
    if unknown:
        raise SystemValidationError(f'Unknown "{name}" settings: {", ".join(sorted(unknown))}')
    return section


def _populate_specs(value: Any, depth: int = 1) -> Tuple[PopulateSpec, ...]:
    """
    Parse a populate configuration: a list of relationship paths or mappings
    with "path", "select" and "populate" keys

    :param value: populate configuration
    :param depth: nesting level of the parsed specs
    :return: tuple of PopulateSpec
    """
    if value is None:
        return ()
    if isinstance(value, (str, Mapping, PopulateSpec)):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise SystemValidationError(f"Invalid populate setting: {value!r}")

    max_depth = get_int_config("MAX_POPULATE_DEPTH")
    if value and depth > max_depth:
        # this also stops self-referencing configurations
        raise SystemValidationError(f"Populate settings nested deeper than {max_depth} levels")

    result = []
    for item in value:
        if isinstance(item, PopulateSpec):
            if depth - 1 + item.depth > max_depth:
                raise SystemValidationError(f"Populate settings nested deeper than {max_depth} levels")
            result.append(item)
            continue
        if isinstance(item, str):
            item = {"path": item}
        if not isinstance(item, Mapping):
            raise SystemValidationError(f"Invalid populate item: {item!r}")
        unknown = set(item) - POPULATE_KEYS
        if unknown:
            raise SystemValidationError(f'Unknown populate settings: {", ".join(sorted(unknown))}')
        path = item.get("path")
        if not path or not isinstance(path, str):
            raise SystemValidationError(f"Populate item without path: {item!r}")
        spec = PopulateSpec(
            path=path,
            select=_field_names(item.get("select"), f"{path}.select"),
            populate=_populate_specs(item.get("populate"), depth + 1),
        )
        result.append(spec)
    return tuple(result)


def _filter_config(value: Any) -> FilterConfig:
    if isinstance(value, FilterConfig):
        return value
    value = value or {}
    if not isinstance(value, Mapping) or set(value) - {"allowed_fields"}:
        raise SystemValidationError(f"Invalid filter setting: {value!r}")
    return FilterConfig(allowed_fields=frozenset(_field_names(value.get("allowed_fields"), "filter.allowed_fields")))


def _search_config(value: Any) -> SearchConfig:
    if isinstance(value, SearchConfig):
        return value
    value = value or {}
    if not isinstance(value, Mapping) or set(value) - {"disabled", "allowed_fields"}:
        raise SystemValidationError(f"Invalid search setting: {value!r}")
    disabled = value.get("disabled", False)
    if not isinstance(disabled, bool):
        raise SystemValidationError(f"Invalid search.disabled setting: {disabled!r}")
    return SearchConfig(disabled=disabled, allowed_fields=_field_names(value.get("allowed_fields"), "search.allowed_fields"))


def resolve_settings(
    settings: Any = None,
    list_fields: Optional[Iterable[str]] = None,
    get_by_id_fields: Optional[Iterable[str]] = None,
    primary_key: Optional[str] = None,
) -> Settings:
    """Resolve the descriptor configuration into one canonical :class:`Settings` value

    Precedence: ``settings["list"]["keys"]`` over ``list_fields`` and
    ``settings["get_by_id"]["keys"]`` over ``get_by_id_fields``.
    Malformed settings raise a :class:`SystemValidationError`, this aborts the registration.

    :param settings: nested settings mapping or an already resolved Settings instance
    :param list_fields: deprecated, projection of the list operation
    :param get_by_id_fields: deprecated, projection of the get-by-id operation
    :param primary_key: application level unique field
    :return: Settings
    """
    if isinstance(settings, Settings):
        if primary_key and settings.primary_key != primary_key:
            settings = replace(settings, primary_key=primary_key)
        return settings

    if settings is None:
        settings = {}
    if not isinstance(settings, Mapping):
        raise SystemValidationError(f"Invalid settings: {settings!r}")
    unknown = set(settings) - SETTINGS_SECTIONS
    if unknown:
        raise SystemValidationError(f'Unknown settings: {", ".join(sorted(unknown))}')
    if primary_key is not None and not isinstance(primary_key, str):
        raise SystemValidationError(f"Invalid primary key: {primary_key!r}")

    list_section_name = "list"
    if "get" in settings:
        _deprecated('settings["get"]', 'settings["list"]')
        if "list" not in settings:
            list_section_name = "get"
    list_section = _section(settings, list_section_name, LIST_SECTION_KEYS)
    get_by_id_section = _section(settings, "get_by_id", GET_BY_ID_SECTION_KEYS)

    if list_fields is not None:
        _deprecated("list_fields", 'settings["list"]["keys"]')
    if get_by_id_fields is not None:
        _deprecated("get_by_id_fields", 'settings["get_by_id"]["keys"]')

    list_keys = list_section["keys"] if "keys" in list_section else list_fields
    get_by_id_keys = get_by_id_section["keys"] if "keys" in get_by_id_section else get_by_id_fields

    return Settings(
        list_fields=_field_names(list_keys, "list.keys"),
        get_by_id_fields=_field_names(get_by_id_keys, "get_by_id.keys"),
        primary_key=primary_key or None,
        list=ListSettings(
            populate=_populate_specs(list_section.get("populate")),
            filter=_filter_config(list_section.get("filter")),
            search=_search_config(list_section.get("search")),
        ),
        get_by_id=GetByIdSettings(populate=_populate_specs(get_by_id_section.get("populate"))),
    )
