"""
Request parsing: the list query string arguments and the (validated) json payload

Query string arguments:
- filter[<field>]=<value> : exact match
- filter[<field>]=<a>&filter[<field>]=<b> or filter[<field>][]=<a> : set membership
- filter[<field>][<op>]=<value> : range, op is one of gte, lte, gt, lt
- search=<keyword>, searchFields=<csv>, caseSensitive=true|false
"""

import re
from typing import Any, Dict, List, Optional
from flask import Request
from werkzeug.datastructures import MultiDict

FILTER_ARG_RE = re.compile(r"^filter\[(\w+)\](?:\[(\w*)\])?$")
TRUE_VALUES = ("true", "1", "yes")


def parse_filter_args(args: MultiDict) -> Dict[str, Any]:
    """
    :param args: request query arguments
    :return: nested filter mapping, eg. {"age": {"gte": "18"}, "role": ["admin", "dev"], "name": "john"}
    """
    filters: Dict[str, Any] = {}
    for arg in args.keys():
        match = FILTER_ARG_RE.match(arg)
        if not match:
            continue
        field_name, op = match.group(1), match.group(2)
        values = args.getlist(arg)
        current = filters.get(field_name)
        if op:
            if not isinstance(current, dict):
                # the range operators take precedence over a plain value
                current = filters[field_name] = {}
            current[op] = values[-1]
        elif isinstance(current, dict):
            continue
        elif op == "" or len(values) > 1 or isinstance(current, list):
            # filter[field][]=a or a repeated filter[field]
            previous = current if isinstance(current, list) else ([] if current is None else [current])
            filters[field_name] = previous + values
        else:
            filters[field_name] = values[0]
    return filters


def parse_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


# pylint: disable=too-many-ancestors
class DocrudRequest(Request):
    """
    Parse the docrud request arguments:
    - query args: filter[], search, searchFields, caseSensitive
    - body: json payload, possibly replaced by the validated payload
    """

    filters: Dict[str, Any] = {}
    search: Optional[str] = None
    search_fields: List[str] = []
    case_sensitive = False
    _payload = None

    def __init__(self, *args, **kwargs):
        """
        constructor
        """
        super().__init__(*args, **kwargs)
        self.parse_list_args()

    def parse_list_args(self) -> None:
        """
        parse the list request arguments
        """
        self.filters = parse_filter_args(self.args)
        self.search = self.args.get("search")
        self.search_fields = parse_csv(self.args.get("searchFields"))
        self.case_sensitive = self.args.get("caseSensitive", "false").lower() in TRUE_VALUES

    @property
    def payload(self) -> Any:
        """
        :return: the payload set by the validation middleware, or the json body
        """
        if self._payload is not None:
            return self._payload
        return self.get_json(silent=True)

    @payload.setter
    def payload(self, value: Any) -> None:
        self._payload = value
