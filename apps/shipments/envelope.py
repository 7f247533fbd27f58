"""
Response envelope shared by every ShipDesk endpoint.

    {"success": true,  "data": ...}
    {"success": false, "error": "...", "code": "...", "suggestion": "..."}
"""

from rest_framework import status as http
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler


def ok(data=None, status=http.HTTP_200_OK, **extra):
    return Response({"success": True, "data": data, **extra}, status=status)


def fail(error, status=http.HTTP_400_BAD_REQUEST, code=None, suggestion=None, **extra):
    body = {"success": False, "error": str(error)}
    if code:
        body["code"] = code
    if suggestion:
        body["suggestion"] = suggestion
    body.update(extra)
    return Response(body, status=status)


def from_result(result: dict, error_status=http.HTTP_400_BAD_REQUEST, success_status=http.HTTP_200_OK):
    """Render a service-level {success, ...} dict with a matching HTTP status."""
    return Response(result, status=success_status if result.get("success") else error_status)


def exception_handler(exc, context):
    """DRF exception handler that keeps the envelope for framework errors."""
    response = drf_exception_handler(exc, context)
    if response is None:
        return None
    detail = response.data
    if isinstance(detail, dict) and "detail" in detail:
        message = str(detail["detail"])
    else:
        message = "Invalid request"
    response.data = {"success": False, "error": message, "details": detail}
    return response
