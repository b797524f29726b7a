"""
Error Mapping Tests
Run: pytest tests/test_errors.py -v
"""

import uuid

from fastapi import status
from sqlalchemy.exc import OperationalError

from dealhealth.core.errors import (
    ERROR_MESSAGES,
    ErrorCode,
    create_error_response,
    get_error_code_for_exception,
)
from dealhealth.scoring.exceptions import DealNotFoundError


class TestErrorMapping:
    def test_deal_not_found(self):
        code, http_status = get_error_code_for_exception(DealNotFoundError(uuid.uuid4()))
        assert code == ErrorCode.DEAL_NOT_FOUND
        assert http_status == status.HTTP_404_NOT_FOUND

    def test_database_error(self):
        exc = OperationalError("SELECT 1", {}, Exception("connection refused"))
        code, http_status = get_error_code_for_exception(exc)
        assert code == ErrorCode.DATABASE_ERROR
        assert http_status == status.HTTP_503_SERVICE_UNAVAILABLE

    def test_value_error(self):
        assert get_error_code_for_exception(ValueError("bad")) == (
            ErrorCode.VALIDATION_ERROR,
            status.HTTP_400_BAD_REQUEST,
        )

    def test_anything_else(self):
        assert get_error_code_for_exception(RuntimeError("boom")) == (
            ErrorCode.INTERNAL_ERROR,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class TestCreateErrorResponse:
    def test_default_message_and_status(self):
        exc = create_error_response(ErrorCode.DEAL_NOT_FOUND)
        assert exc.status_code == 404
        assert exc.detail == {
            "error_code": "deal_not_found",
            "message": ERROR_MESSAGES[ErrorCode.DEAL_NOT_FOUND],
        }

    def test_custom_message(self):
        exc = create_error_response(ErrorCode.INTERNAL_ERROR, message="nope")
        assert exc.status_code == 500
        assert exc.detail["message"] == "nope"
