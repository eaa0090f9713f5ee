# Request body validation middleware
#
# The resource POST routes validate the json payload with the marshmallow schema
# of the resource descriptor before the controller is called:
# - the loaded payload (defaults applied, unknown fields excluded) replaces the request payload
# - invalid payloads are rejected with a 400 envelope listing all violations
#
from functools import wraps
from http import HTTPStatus
from typing import Any, Callable, Iterable, List, Mapping, Union

import marshmallow
from marshmallow import EXCLUDE, Schema
from flask import request

import docrud
from .errors import ValidationError
from .response import Envelope, envelope_response

VALIDATION_MESSAGE = "Validation error"


def flatten_messages(messages: Union[Mapping, List, str], path: str = "") -> List[str]:
    """
    :param messages: marshmallow error messages, eg. {"email": ["Not a valid email address."]}
    :param path: location of the messages
    :return: list of messages, eg. ["email: Not a valid email address."]
    """
    if isinstance(messages, str):
        if path and path != "_schema":
            return [f"{path}: {messages}"]
        return [messages]
    result = []
    if isinstance(messages, Mapping):
        for key, value in messages.items():
            key = str(key)
            if key == "_schema":
                result += flatten_messages(value, path)
            else:
                result += flatten_messages(value, f"{path}.{key}" if path else key)
    else:
        for value in messages:
            result += flatten_messages(value, path)
    return result


def load_body(schema: Schema, payload: Any, many: bool = False, keep: Iterable[str] = ()) -> Any:
    """
    Load a payload with a marshmallow schema

    :param schema: marshmallow schema instance
    :param payload: json payload
    :param many: the payload is a list of documents
    :param keep: payload fields that are passed through even if the schema doesn't declare them (eg. the identifier)
    :raises ValidationError: with the flattened violation messages
    :return: loaded payload
    """
    try:
        loaded = schema.load(payload, many=many, unknown=EXCLUDE)
    except marshmallow.ValidationError as exc:
        messages = flatten_messages(exc.messages)
        raise ValidationError(VALIDATION_MESSAGE, errors=messages)

    items = zip(payload, loaded) if many else [(payload, loaded)]
    for item, result in items:
        for field_name in keep:
            if field_name in item and field_name not in result:
                result[field_name] = item[field_name]
    return loaded


def validate_body(schema: Union[Schema, type], many: bool = False, keep: Iterable[str] = ()) -> Callable:
    """
    Decorator for the resource http methods: validate the json payload

    :param schema: marshmallow schema class or instance
    :param many: validate every document of a list payload
    :param keep: fields passed through, cfr. load_body
    :return: decorator
    """
    if isinstance(schema, type):
        schema = schema()
    keep = tuple(keep)

    def decorator(fun: Callable) -> Callable:
        @wraps(fun)
        def validated(*args, **kwargs):
            payload = request.payload
            if many and (not isinstance(payload, list) or not payload):
                # the controller rejects the empty or malformed batch
                return fun(*args, **kwargs)
            try:
                request.payload = load_body(schema, payload, many, keep)
            except ValidationError as exc:
                error = "; ".join(exc.errors or [])
                docrud.log.debug(f"Rejected {request.method} {request.path}: {error}")
                return envelope_response(Envelope.failure(HTTPStatus.BAD_REQUEST.value, VALIDATION_MESSAGE, error))
            return fun(*args, **kwargs)

        return validated

    return decorator
