# flake8: noqa: F401
#
# Import order matters: docrud_init creates the package logger and the DB extension
# object that the other modules reference as docrud.log and docrud.DB
#
from .docrud_init import DB, log, DOCRUD, dict_merge
from .errors import DocrudError, ValidationError, ConflictError, NotFoundError, StoreError, IntegrityViolation, SystemValidationError
from .settings import Settings, FilterConfig, SearchConfig, PopulateSpec, resolve_settings
from .query import QuerySpec, SearchExpression, compile_filter, compile_search, build_list_query, build_get_by_id_query
from .store import DocumentStore, SQLAStore
from .uniqueness import UniquenessEnforcer
from .controller import ResourceController
from .response import Envelope
from .request import DocrudRequest
from .validation import validate_body
from .docrud_api import DocrudAPI, ResourceDescriptor, create_api
from .__about__ import __version__, __description__

DocrudApi = DocrudAPI

__all__ = (
    "__version__",
    "__description__",
    #
    "DOCRUD",
    "DocrudAPI",
    "DocrudApi",
    "ResourceDescriptor",
    "create_api",
    # settings:
    "Settings",
    "FilterConfig",
    "SearchConfig",
    "PopulateSpec",
    "resolve_settings",
    # query:
    "QuerySpec",
    "SearchExpression",
    "compile_filter",
    "compile_search",
    "build_list_query",
    "build_get_by_id_query",
    # store:
    "DocumentStore",
    "SQLAStore",
    "UniquenessEnforcer",
    "ResourceController",
    "Envelope",
    "DocrudRequest",
    "validate_body",
    # Errors:
    "DocrudError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "StoreError",
    "IntegrityViolation",
    "SystemValidationError",
)
