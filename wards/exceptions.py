from rest_framework import status
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

from wards.errors import (
    AllocationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PartialFailureError,
    ValidationError,
)

DOMAIN_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidStateError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    PartialFailureError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _domain_response(exc: AllocationError) -> Response:
    error = {'code': exc.code, 'message': exc.message}
    if isinstance(exc, PartialFailureError):
        error.update({'committed': exc.committed, 'failed': exc.failed, 'pending': exc.pending})
    http_status = next(
        (code for cls, code in DOMAIN_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    return Response({'ok': False, 'error': error}, status=http_status)


def api_exception_handler(exc, context):
    if isinstance(exc, AllocationError):
        return _domain_response(exc)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    code = getattr(exc, 'default_code', 'api_error')
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code)
