#
# Functions for api documentation: the swagger_doc decorator generates the swagger
# operation object of the docrud resource http methods
#
import inspect
from http import HTTPStatus
from typing import Any, Callable, Dict, List

import yaml
from flask_restful_swagger_2 import swagger

import docrud
from .config import is_debug
from .docrud_init import dict_merge
from .errors import SystemValidationError

DOC_DELIMITER = "---"  # used as delimiter between the rest_doc swagger yaml spec
# and regular documentation

# additional responses added when in debug mode
debug_responses = {
    HTTPStatus.BAD_REQUEST.value: {"description": HTTPStatus.BAD_REQUEST.description},
    HTTPStatus.INTERNAL_SERVER_ERROR.value: {"description": "Internal Server Error"},
}


# pylint: disable=redefined-builtin,line-too-long,logging-format-interpolation
def parse_object_doc(object: Callable) -> Dict[str, Any]:
    """
    Parse the yaml description from the documented methods
    """
    api_doc = {}
    obj_doc = str(inspect.getdoc(object))
    raw_doc = obj_doc.split(DOC_DELIMITER)[0]
    yaml_doc = None

    try:
        yaml_doc = yaml.safe_load(raw_doc)
    except (SyntaxError, yaml.scanner.ScannerError) as exc:
        docrud.log.error(f"Failed to parse documentation {raw_doc} ({exc})")
        yaml_doc = {"description": raw_doc}
    except Exception:
        raise SystemValidationError("Failed to parse api doc")

    if isinstance(yaml_doc, dict):
        api_doc.update(yaml_doc)

    return api_doc


def apply_fstring(swagger_obj, vars, k=None):
    """
    Format the f-strings in the swagger object
    """
    if isinstance(swagger_obj, str):
        result = swagger_obj
        try:
            result = swagger_obj.format(**vars)
        except (KeyError, IndexError, ValueError) as exc:
            docrud.log.error(f"Failed to format ({exc})")
        return result
    elif isinstance(swagger_obj, list):
        for i in swagger_obj:
            apply_fstring(i, vars)
    elif isinstance(swagger_obj, dict):
        for k, v in swagger_obj.copy().items():
            new_v = apply_fstring(v, vars)
            if isinstance(k, int):
                # used to convert integer codes (from the responses)
                del swagger_obj[k]
                k = str(k)
            swagger_obj[k] = new_v

    return swagger_obj


def list_parameters(field_types: Dict[str, str], filter_fields: List[str], search_fields: List[str], search_disabled: bool) -> List[Dict[str, Any]]:
    """
    :return: the query string parameters of the list endpoint
    """
    parameters = []
    for field_name in filter_fields:
        parameters.append(
            {
                "name": f"filter[{field_name}]",
                "in": "query",
                "type": field_types.get(field_name, "string"),
                "required": False,
                "description": f"{field_name} filter, range operators: filter[{field_name}][gte|lte|gt|lt]",
            }
        )
    if search_disabled:
        return parameters
    parameters.append({"name": "search", "in": "query", "type": "string", "required": False, "description": "Search keyword"})
    parameters.append(
        {
            "name": "searchFields",
            "in": "query",
            "type": "string",
            "required": False,
            "description": f"Comma separated fields to search ({', '.join(search_fields)})",
        }
    )
    parameters.append(
        {"name": "caseSensitive", "in": "query", "type": "boolean", "required": False, "default": False, "description": "Case sensitive search"}
    )
    return parameters


def swagger_doc(controller, tags=None, instance=False, bulk=False):
    """
    :param controller: ResourceController of the exposed resource
    :param tags: swagger tags
    :param instance: the documented endpoint takes the document identifier
    :param bulk: the documented endpoint is the bulk insert endpoint
    :return: decorator
    """

    def swagger_doc_gen(func):
        """
        Decorator used to document the docrud resource HTTP methods exposed in the API
        """
        store = controller.store
        settings = controller.settings
        model_name = controller.model_name
        id_field = store.id_field
        http_method = func.__name__.lower()
        field_types = store.describe_fields()
        doc_tags = tags if tags is not None else [model_name]
        doc = {"tags": doc_tags}
        parameters = []

        if instance:
            parameters.append({"name": docrud.DOCRUD.OBJECT_ID, "in": "path", "type": "string", "required": True})

        document_schema = {"type": "object", "properties": {name: {"type": type_} for name, type_ in field_types.items()}}
        if http_method == "get" and not instance:
            list_search = settings.list.search
            parameters += list_parameters(
                field_types, sorted(settings.list.filter.allowed_fields), list(list_search.allowed_fields), list_search.disabled
            )
        elif http_method == "post":
            body_schema = {"type": "array", "items": document_schema} if bulk else document_schema
            description = f"{model_name} documents" if bulk else f"{model_name} attributes, the document is updated if {id_field} is set"
            parameters.append({"name": "POST body", "in": "body", "description": description, "schema": body_schema, "required": True})

        responses = {}
        if is_debug():
            responses.update(debug_responses)

        doc["parameters"] = parameters
        doc["responses"] = responses
        doc["produces"] = ["application/json"]

        method_doc = parse_object_doc(func)
        dict_merge(doc, method_doc)
        apply_fstring(doc, {"model_name": model_name, "id_field": id_field})
        return swagger.doc(doc)(func)

    return swagger_doc_gen
