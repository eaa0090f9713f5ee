# docrud to json encoding
import datetime
import decimal
from uuid import UUID
from flask.json.provider import DefaultJSONProvider
import docrud
from .config import is_debug
from .response import Envelope


class DocrudJSONProvider(DefaultJSONProvider):
    """
    Flask JSON encoding of the documents: store values (dates, decimals, uuids, ...) and envelopes
    """

    # keep the envelope and document keys in insertion order
    sort_keys = False

    # pylint: disable=too-many-return-statements,arguments-differ,method-hidden
    def default(self, obj):
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if isinstance(obj, Envelope):
            return obj.to_dict()
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, datetime.datetime):
            return obj.isoformat(" ")
        if isinstance(obj, (datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, (set, frozenset, tuple)):
            return list(obj)
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, decimal.Decimal):
            return float(obj)
        if isinstance(obj, bytes):
            if obj == b"":
                return ""
            docrud.log.debug("DocrudJSONProvider: serializing bytes obj")
            return obj.hex()

        docrud.log.warning(f'JSON Encoding Error: Unknown object type "{type(obj)}" for {obj}')
        if not is_debug():
            return {"error": "DocrudJSONProvider invalid object"}
        return str(obj)
