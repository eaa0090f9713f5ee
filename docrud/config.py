# Configuration settings may be set in app.config, as DOCRUD keyword arguments or as environment variables
# The get_config function resolves them in that order, falling back to the DOCRUD class defaults
import os
import logging
from flask import current_app
import docrud
from typing import Any, Optional


def get_config(option: str) -> Optional[Any]:
    """Retrieve a configuration parameter from the app
    :param option: configuration parameter
    :return: configuration value
    """
    try:
        return current_app.config[option]
    except (KeyError, RuntimeError):
        # RuntimeError: working outside of application context
        pass

    result = getattr(docrud.DOCRUD, option, None)
    if result is None:
        result = os.environ.get(option, None)
    return result


def get_int_config(option: str) -> int:
    """
    :param option: configuration parameter
    :return: the configuration value converted to an int (environment values are strings)
    """
    return int(get_config(option))


def is_debug() -> bool:
    """
    We use the loglevel to check whether we're running in debug mode
    :return: whether the app is in debug mode
    :rtype: Boolean
    """
    return docrud.log.getEffectiveLevel() < logging.INFO
