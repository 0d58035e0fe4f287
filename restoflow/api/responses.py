"""
HTTP rendering of service results
"""

from fastapi import status
from fastapi.responses import JSONResponse

from restoflow.core.results import ErrorKind, ServiceResult

ERROR_STATUS_CODES = {
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.TRANSIENT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.AUTH: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
}


def result_response(result: ServiceResult, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    if result.ok:
        code = success_status
    else:
        code = ERROR_STATUS_CODES[result.error.kind]
    return JSONResponse(status_code=code, content=result.to_dict())
