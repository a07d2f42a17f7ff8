# essencia-dashboard/errors.py
import enum
import logging
from typing import Any, Optional

import httpx
import requests

logger = logging.getLogger(__name__)


class ErrorType(str, enum.Enum):
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    FUNIFIER_API_ERROR = "FUNIFIER_API_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DATA_PROCESSING_ERROR = "DATA_PROCESSING_ERROR"


HTTP_STATUS = {
    ErrorType.AUTHENTICATION_ERROR: 401,
    ErrorType.NETWORK_ERROR: 503,
    ErrorType.FUNIFIER_API_ERROR: 502,
    ErrorType.VALIDATION_ERROR: 422,
    ErrorType.DATA_PROCESSING_ERROR: 500,
}

USER_MESSAGES = {
    ErrorType.AUTHENTICATION_ERROR: "Credenciais inválidas ou sessão expirada. Faça login novamente.",
    ErrorType.NETWORK_ERROR: "Erro de conexão. Verifique sua internet e tente novamente.",
    ErrorType.FUNIFIER_API_ERROR: "Erro no servidor. Tente novamente em alguns minutos.",
    ErrorType.VALIDATION_ERROR: "Dados inválidos. Verifique as informações e tente novamente.",
    ErrorType.DATA_PROCESSING_ERROR: "Erro ao processar dados. Tente novamente.",
}


class ApiError(Exception):
    """A classified failure, raised by provider calls and request validation."""

    def __init__(self, type: ErrorType, message: str, details: Any = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.type = type
        self.message = message
        self.details = details
        # Upstream status, when the failure came from a provider response.
        self.status_code = status_code

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.type]

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.type]

    def to_dict(self) -> dict:
        body = {"error": self.type.value, "message": self.message, "user_message": self.user_message}
        if self.details is not None:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"ApiError({self.type.value}, {self.message!r})"


def _from_status(status: int, text: str, context: str) -> ApiError:
    if status in (401, 403):
        return ApiError(ErrorType.AUTHENTICATION_ERROR, "Credenciais inválidas ou sessão expirada", status_code=status)
    if status == 429:
        return ApiError(ErrorType.FUNIFIER_API_ERROR, "Too many requests. Please try again later.", status_code=status)
    return ApiError(
        ErrorType.FUNIFIER_API_ERROR,
        f"Provider error during '{context}' (status {status})",
        details=text[:500] if text else None,
        status_code=status,
    )


def from_requests_exception(e: requests.exceptions.RequestException, context: str) -> ApiError:
    if isinstance(e, requests.exceptions.Timeout):
        error = ApiError(ErrorType.NETWORK_ERROR, f"Request timeout during '{context}'")
    elif isinstance(e, requests.exceptions.ConnectionError):
        error = ApiError(ErrorType.NETWORK_ERROR, f"Network error during '{context}'")
    elif e.response is not None:
        error = _from_status(e.response.status_code, e.response.text, context)
    else:
        error = ApiError(ErrorType.NETWORK_ERROR, f"Request failed during '{context}': {e}")
    logger.error("Error during '%s': %s", context, error.message)
    return error


def from_httpx_exception(e: httpx.HTTPError, context: str) -> ApiError:
    if isinstance(e, httpx.TimeoutException):
        error = ApiError(ErrorType.NETWORK_ERROR, f"Request timeout during '{context}'")
    elif isinstance(e, httpx.HTTPStatusError):
        error = _from_status(e.response.status_code, e.response.text, context)
    else:
        error = ApiError(ErrorType.NETWORK_ERROR, f"Network error during '{context}'")
    logger.error("Error during async '%s': %s", context, error.message)
    return error
