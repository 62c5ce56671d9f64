import logging

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

class NotFoundError(LookupError):
    """Raised when a requested row does not exist or is not visible to the caller."""
    pass

class AIServiceError(Exception):
    """Raised when the AI provider fails or returns an unusable answer."""
    pass

class BillingServiceError(Exception):
    """Raised when the payment provider rejects a request."""
    pass

def to_http_exception(exc: Exception, failure_detail: str) -> HTTPException:
    """Map a service-layer error to the HTTP error returned to the client.

    Unexpected errors are logged and hidden behind ``failure_detail``.
    """
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, (AIServiceError, BillingServiceError)):
        logger.error(f"{failure_detail}: {str(exc)}")
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

    logger.error(f"{failure_detail}: {str(exc)}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure_detail)
