# Response envelope
#
# All docrud routes reply with the same envelope:
# {
#     "success": true,
#     "statusCode": 200,
#     "message": "User fetched successfully",
#     "data": {...}
# }
# failures with details (validation messages, duplicate keys) carry an "error" member instead of "data"
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Dict, Optional
from flask import jsonify, make_response, Response


@dataclass(frozen=True)
class Envelope:
    success: bool
    status_code: int
    message: str
    data: Any = None
    error: Any = None

    @classmethod
    def ok(cls, message: str, data: Any = None, status_code: int = HTTPStatus.OK.value) -> "Envelope":
        return cls(True, status_code, message, data=data)

    @classmethod
    def failure(cls, status_code: int, message: str, error: Optional[Any] = None) -> "Envelope":
        return cls(False, status_code, message, error=error)

    def to_dict(self) -> Dict[str, Any]:
        """
        create the response payload that will be sent to the browser
        """
        result = {"success": self.success, "statusCode": self.status_code, "message": self.message}
        if self.error is not None:
            result["error"] = self.error
        else:
            result["data"] = self.data
        return result


def envelope_response(envelope: Envelope) -> Response:
    """
    :param envelope: operation result
    :return: flask json response with the envelope status code
    """
    return make_response(jsonify(envelope.to_dict()), envelope.status_code)
