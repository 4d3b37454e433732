"""API error types shared by the apps."""

from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException, PermissionDenied


class AccessDenied(PermissionDenied):
    """The caller is authenticated but may not act on the requested client."""

    default_detail = "You do not have access to this client."
    default_code = "access_denied"


class MergeConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The campaigns cannot be merged."
    default_code = "merge_conflict"


class TransactionFailure(APIException):
    """An atomic unit of work could not be committed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "The operation could not be completed. Please retry."
    default_code = "transaction_failure"


class SchemaOutOfDate(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Database schema is out of date. Run backend migrations."
    default_code = "schema_out_of_date"
