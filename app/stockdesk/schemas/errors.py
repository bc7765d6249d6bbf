from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    error: str
    details: dict | None = None
    trace_id: str | None = None


class ApiValidationErrorItem(BaseModel):
    field: str | None = None
    message: str
    type: str
    loc: list[str | int] | None = None


class ApiValidationErrorDetails(BaseModel):
    errors: list[ApiValidationErrorItem]


class ApiValidationErrorResponse(ApiErrorResponse):
    details: ApiValidationErrorDetails | dict | None = None


COMMON_ERROR_RESPONSES = {
    401: {"model": ApiErrorResponse, "description": "Missing or invalid token"},
    403: {"model": ApiErrorResponse, "description": "Permission denied or user inactive"},
    422: {"model": ApiValidationErrorResponse, "description": "Validation error"},
}
