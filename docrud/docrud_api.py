# flask_restful_swagger2 API subclass
#
# DocrudAPI exposes resource descriptors: for every descriptor the collection, instance
# and bulk endpoints are created under <prefix>/<path>
#
from dataclasses import dataclass, field
from functools import wraps
from http import HTTPStatus
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

import werkzeug
from flask import Flask
from flask_restful_swagger_2 import Api as FRSApiBase
from flask_restful_swagger_2 import validate_path_item_object
from flask_restful_swagger_2 import extract_swagger_path, ValidationError as FRSValidationError

import docrud
from .config import get_config, is_debug
from .controller import ResourceController
from .errors import DocrudError, StoreError, SystemValidationError, HIDDEN_LOG
from .json_encoder import DocrudJSONProvider
from .resource import DocrudBulkAPI, DocrudCollectionAPI, DocrudInstanceAPI
from .response import Envelope, envelope_response
from .settings import Settings, resolve_settings
from .store import DocumentStore, SQLAStore
from .swagger_doc import swagger_doc
from .validation import validate_body

HTTP_METHODS = ["GET", "POST", "DELETE"]
DESCRIPTOR_KEYS = {"model", "path", "validation_schema", "primary_key", "middlewares", "settings", "list_fields", "get_by_id_fields", "store"}


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Describes an exposed resource

    :param model: SQLAlchemy model of the documents
    :param path: url path of the resource, relative to the api prefix
    :param validation_schema: marshmallow schema (class or instance) of the POST bodies
    :param primary_key: document field with unique values, unrelated to the model primary key
    :param middlewares: decorators applied to the resource http methods, the first one runs first
    :param settings: nested settings mapping or resolved Settings
    :param list_fields: deprecated, use settings["list"]["keys"]
    :param get_by_id_fields: deprecated, use settings["get_by_id"]["keys"]
    :param store: document store, defaults to an SQLAStore of the model
    """

    model: Any
    path: str
    validation_schema: Any = None
    primary_key: Optional[str] = None
    middlewares: Tuple[Callable, ...] = ()
    settings: Any = None
    list_fields: Optional[Iterable[str]] = None
    get_by_id_fields: Optional[Iterable[str]] = None
    store: Optional[DocumentStore] = field(default=None, compare=False)

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any]) -> "ResourceDescriptor":
        unknown = set(mapping) - DESCRIPTOR_KEYS
        if unknown:
            raise SystemValidationError(f'Unknown resource descriptor keys: {", ".join(sorted(unknown))}')
        if "model" not in mapping or "path" not in mapping:
            raise SystemValidationError(f"Resource descriptors need a model and a path: {mapping!r}")
        kwargs = dict(mapping)
        kwargs["middlewares"] = tuple(kwargs.get("middlewares") or ())
        return cls(**kwargs)


class DocrudAPI(FRSApiBase):
    """
    Subclass of the flask_restful_swagger API class where we add the expose_resource method
    this method creates the API endpoints for a resource descriptor and the corresponding swagger
    documentation
    """

    _operation_ids: Dict[str, int] = {}

    def __init__(
        self,
        app: Flask,
        host: str = "localhost",
        port: Optional[int] = 5000,
        prefix: str = "",
        description: str = "docrud API",
        swaggerui_blueprint: bool = True,
        **kwargs,
    ) -> None:
        """
        :param app: Flask application
        :param host: host shown in the swagger ui
        :param port: port shown in the swagger ui, None when it shouldn't be shown (eg. when proxied)
        :param prefix: url prefix of the exposed resources, eg. "/api"
        :param description: swagger api description
        :param swaggerui_blueprint: register the swagger ui under the prefix
        :param kwargs: DOCRUD configuration (eg. MAX_POPULATE_DEPTH=3) and flask_restful_swagger_2 Api arguments
        """
        self._custom_swagger = kwargs.pop("custom_swagger", {})
        self.swaggerui_blueprint = swaggerui_blueprint
        self.controllers: Dict[str, ResourceController] = {}
        app_db = kwargs.pop("app_db", None)
        config = {key: kwargs.pop(key) for key in list(kwargs) if key.isupper()}
        docrud.DOCRUD(app, app_db=app_db, prefix=prefix, swaggerui_blueprint=swaggerui_blueprint, **config)
        if port:
            host = f"{host}:{port}"

        super().__init__(
            app,
            api_spec_url=kwargs.pop("api_spec_url", "/swagger"),
            host=host,
            description=description,
            prefix=prefix,
            base_path=prefix or "/",
            **kwargs,
        )
        app.json = DocrudJSONProvider(app)
        self.update_spec()

    def update_spec(self) -> None:
        """
        merge the custom swagger into the swagger.json
        """
        _swagger_doc = self.get_swagger_doc()
        docrud.dict_merge(_swagger_doc, self._custom_swagger)

    def expose_resource(self, descriptor: Union[ResourceDescriptor, Dict[str, Any]]) -> ResourceController:
        """This method creates the API url endpoints for a resource descriptor
        :param descriptor: ResourceDescriptor or descriptor mapping
        :return: the controller of the exposed resource

        creates classes of the form

        @api_decorator
        class User_API(DocrudCollectionAPI):
            controller = ResourceController(SQLAStore(User), settings)

        and adds them as api resources to /users, /users/<string:id> and /users/bulk
        """
        if isinstance(descriptor, dict):
            descriptor = ResourceDescriptor.from_mapping(descriptor)

        path = descriptor.path.strip("/")
        if not path:
            raise SystemValidationError(f"Invalid resource path {descriptor.path!r}")
        if path in self.controllers:
            raise SystemValidationError(f'Resource path "{path}" is already exposed')

        store = descriptor.store if descriptor.store is not None else SQLAStore(descriptor.model)
        settings = resolve_settings(descriptor.settings, descriptor.list_fields, descriptor.get_by_id_fields, descriptor.primary_key)
        self.check_settings(store, settings)
        controller = ResourceController(store, settings)
        self.controllers[path] = controller

        model_name = store.model_name
        tags = [path]
        properties = {"controller": controller}
        middlewares = tuple(descriptor.middlewares)
        validators = {}
        if descriptor.validation_schema is not None:
            validators["post"] = validate_body(descriptor.validation_schema, keep=(store.id_field,))

        url = f"/{path}"
        endpoint = f"{path}"
        swagger_decorator = swagger_doc(controller, tags) if self.swaggerui_blueprint else lambda x: x
        api_class = api_decorator(type(f"{model_name}_API", (DocrudCollectionAPI,), properties), swagger_decorator, middlewares, validators)
        docrud.log.info(f"Exposing {model_name} on {url}, endpoint: {endpoint}")
        self.add_resource(api_class, url, endpoint=endpoint, methods=["GET", "POST"])

        url = f"/{path}/{get_config('BULK_PATH')}"
        endpoint = f"{path}_bulk"
        if descriptor.validation_schema is not None:
            validators = {"post": validate_body(descriptor.validation_schema, many=True, keep=(store.id_field,))}
        swagger_decorator = swagger_doc(controller, tags, bulk=True) if self.swaggerui_blueprint else lambda x: x
        api_class = api_decorator(type(f"{model_name}_API_bulk", (DocrudBulkAPI,), properties), swagger_decorator, middlewares, validators)
        docrud.log.info(f"Exposing {model_name} bulk insert on {url}, endpoint: {endpoint}")
        self.add_resource(api_class, url, endpoint=endpoint, methods=["POST"])

        url = f"/{path}/<string:{docrud.DOCRUD.OBJECT_ID}>"
        endpoint = f"{path}_instance"
        swagger_decorator = swagger_doc(controller, tags, instance=True) if self.swaggerui_blueprint else lambda x: x
        api_class = api_decorator(type(f"{model_name}_API_i", (DocrudInstanceAPI,), properties), swagger_decorator, middlewares)
        docrud.log.info(f"Exposing {model_name} instances on {url}, endpoint: {endpoint}")
        self.add_resource(api_class, url, endpoint=endpoint, methods=["GET", "DELETE"])

        self._swagger_object["tags"].append({"name": path, "description": f"{model_name} documents"})
        self.update_spec()
        return controller

    def expose(self, *descriptors: Union[ResourceDescriptor, Dict[str, Any]]) -> None:
        """
        Expose multiple resources at once
        """
        for descriptor in descriptors:
            self.expose_resource(descriptor)

    @staticmethod
    def check_settings(store: DocumentStore, settings: Settings) -> None:
        """
        Validate the resolved settings against the store, a misconfigured resource isn't exposed
        """
        if settings.primary_key:
            store.check_field(settings.primary_key)
        for field_name in settings.list.filter.allowed_fields:
            store.check_field(field_name)
        for field_name in settings.list.search.allowed_fields:
            store.check_field(field_name)
        store.check_populate(settings.list.populate)
        store.check_populate(settings.get_by_id.populate)

    @classmethod
    def _get_operation_id(cls, summary: str) -> str:
        """
        :return: a unique operationId for the summary
        """
        summary = "".join(c for c in summary.title() if c.isalnum())
        count = cls._operation_ids.get(summary, 0) + 1
        cls._operation_ids[summary] = count
        return f"{summary}{count}"

    def add_resource(self, resource, *urls, **kwargs):
        """
        This method is partly copied from flask_restful_swagger_2/__init__.py

        Changed because only the methods passed in kwargs["methods"] should be documented
        and the swagger endpoint resource has to be registered as is
        """
        methods = [method.lower() for method in kwargs.get("methods") or resource.methods or []]
        path_item = {}
        for method in methods:
            method_impl = resource.__dict__.get(method)
            operation = getattr(method_impl, "__swagger_operation_object", None) if method_impl else None
            if not operation:
                continue
            operation = dict(operation)
            operation["operationId"] = self._get_operation_id(operation.get("summary", method))
            path_item[method] = operation

        if path_item:
            try:
                validate_path_item_object(path_item)
            except FRSValidationError as exc:
                docrud.log.exception(exc)
                raise SystemValidationError(f"Invalid swagger for {resource.__name__}: {exc}")
            for url in urls:
                if not url.startswith("/"):
                    raise SystemValidationError("paths must start with a /")
                self._swagger_object["paths"][extract_swagger_path(url)] = path_item

        # pylint: disable=bad-super-call
        super(FRSApiBase, self).add_resource(resource, *urls, **kwargs)


def create_api(app: Flask, prefix: str = "", resources: Iterable[Union[ResourceDescriptor, Dict[str, Any]]] = (), **kwargs) -> DocrudAPI:
    """
    Create the api and expose the resources

    :param app: Flask application
    :param prefix: url prefix, eg. "/api"
    :param resources: resource descriptors or descriptor mappings
    :return: DocrudAPI
    """
    api = DocrudAPI(app, prefix=prefix, **kwargs)
    api.expose(*resources)
    return api


def api_decorator(cls, swagger_decorator, middlewares: Iterable[Callable] = (), validators: Optional[Dict[str, Callable]] = None):
    """Decorator for the API views:
        - add request validation ( validators[method_name] )
        - add the user middlewares
        - add generic exception handling
        - add swagger documentation ( swagger_decorator )

    :param cls: The class that will be decorated (e.g. DocrudCollectionAPI subclass)
    :param swagger_decorator: function that will generate the swagger
    :param middlewares: decorators, the first one is the outermost
    :param validators: http method name => body validation decorator
    :return: decorated class
    """
    validators = validators or {}
    for method_name in [method.lower() for method in HTTP_METHODS]:
        method = getattr(cls, method_name, None)
        if not method:
            continue

        decorated_method = method
        validator = validators.get(method_name)
        if validator is not None:
            decorated_method = validator(decorated_method)
        for middleware in reversed(tuple(middlewares)):
            decorated_method = wraps(method)(middleware(decorated_method))
        # Add exception handling
        decorated_method = http_method_decorator(decorated_method)

        try:
            # Add swagger documentation
            decorated_method = swagger_decorator(decorated_method)
        except (DocrudError, TypeError, ValueError) as exc:
            docrud.log.exception(exc)
            docrud.log.error(f"Failed to generate documentation for {cls.__name__}.{method_name}")

        setattr(cls, method_name, decorated_method)
    return cls


def http_method_decorator(fun: Callable) -> Callable:
    """Decorator for the docrud HTTP methods (get, post, delete)
    - convert the exceptions raised by the middlewares to an envelope
    - rollback the session when something went wrong

    The controller already converts the operation errors
    :param fun:
    :return: wrapped fun
    """

    @wraps(fun)
    def method_wrapper(*args, **kwargs):
        """Wrap the method and perform error handling
        :param *args:
        :param **kwargs:
        :return: result of the wrapped method
        """
        errors = None
        try:
            return fun(*args, **kwargs)

        except werkzeug.exceptions.HTTPException as exc:
            status_code = exc.code
            message = exc.description
            docrud.log.error(message)

        except StoreError as exc:
            status_code = exc.status_code
            message = exc.public_message

        except DocrudError as exc:
            status_code = exc.status_code
            message = exc.message
            errors = exc.errors

        except Exception as exc:  # pylint: disable=broad-except
            docrud.log.exception(exc)
            status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
            message = str(exc) if is_debug() else HIDDEN_LOG

        docrud.DB.session.rollback()
        return envelope_response(Envelope.failure(status_code, message, errors))

    return method_wrapper
