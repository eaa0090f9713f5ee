import logging
import os
import sys
from flask_swagger_ui import get_swaggerui_blueprint
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from .request import DocrudRequest
import docrud
import flask.app
from typing import Any, Dict


class DOCRUD:
    """This class configures the Flask application to serve docrud resources
    :param app: a Flask application.
    :param prefix: URL prefix where the swagger should be hosted. Default is ''
    :param LOGLEVEL: loglevel configuration variable, values from logging module (0: trace, .. 50: critical)
    """

    # Configuration settings are stored as class variables
    LOGLEVEL = logging.WARNING
    # populate trees deeper than this are rejected at registration and cut off at serialization
    MAX_POPULATE_DEPTH = 5
    # reject bulk inserts that repeat a primary key value inside the submitted batch
    REJECT_BATCH_DUPLICATES = True
    # url suffix of the bulk insert endpoint, eg. /api/users/bulk
    BULK_PATH = "bulk"
    # url path parameter of the instance endpoints, eg. /api/users/<string:id>
    OBJECT_ID = "id"

    def __init__(self, app: flask.app.Flask, *args, **kwargs) -> None:
        """
        Constructor
        """
        self.app = app
        if app is not None:
            self.init_app(app, *args, **kwargs)

    def init_app(
        self,
        app: flask.app.Flask,
        prefix: str = "",
        app_db: SQLAlchemy = None,
        swaggerui_blueprint: bool = True,
        **kwargs,
    ) -> None:
        """
        API and application initialization
        """
        if not isinstance(app, Flask):  # pragma: no cover
            raise TypeError("'app' should be Flask.")

        if app_db is None:
            app_db = app.extensions["sqlalchemy"]

        docrud.DB = self.db = app_db

        app.request_class = DocrudRequest
        app.url_map.strict_slashes = False

        if app.config.get("DEBUG", False):
            log.setLevel(logging.DEBUG)

        # Register the swagger ui blueprint
        if swaggerui_blueprint is True:
            swaggerui_blueprint = get_swaggerui_blueprint(
                prefix, f"{prefix}/swagger.json", config={"docExpansion": "none", "defaultModelsExpandDepth": -1}
            )
            app.register_blueprint(swaggerui_blueprint, url_prefix=prefix)

        for conf_name, conf_val in kwargs.items():
            setattr(DOCRUD, conf_name, conf_val)

        # pylint: disable=unused-argument,unused-variable
        @app.teardown_appcontext
        def shutdown_session(exception=None):
            """cfr. http://flask.pocoo.org/docs/0.12/patterns/sqlalchemy/"""
            self.db.session.remove()

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        The webserver will catch stderr so we redirect eveything to sys.stderr
        """
        log = logging.getLogger(__name__)
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


def dict_merge(dct: Dict[str, Any], merge_dct: Dict[str, Any]) -> None:
    """Recursive dict merge used for creating the swagger spec.
    Inspired by :meth:``dict.update()``, instead of updating only
    top-level keys, dict_merge recurses down into dicts nested
    to an arbitrary depth, updating keys. The ``merge_dct`` is merged into ``dct``.
    :param dct: dict onto which the merge is executed
    :param merge_dct: dct merged into dct
    :return: None
    """
    for k in merge_dct:
        if k in dct and isinstance(dct[k], dict) and isinstance(merge_dct[k], dict):
            dict_merge(dct[k], merge_dct[k])
        else:
            # convert to string, for ex. http return codes
            dct[str(k)] = merge_dct[k]


#
# DB and logging initialization
#
DB = SQLAlchemy()

try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = DOCRUD.init_logging(LOGLEVEL)
