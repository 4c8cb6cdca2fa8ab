import json
import socket

import pytest
from google.api_core import exceptions as google_exceptions

from scriptgrader.core.errors import (
    USER_MESSAGES,
    ErrorCategory,
    ImageStorageError,
    MalformedResponseError,
    ServiceConfigurationError,
    TransientServiceError,
    classify_error,
    is_network_error,
    user_message_for,
)
from scriptgrader.services.llm_client import parse_page_number, translate_exception


class TestClassifyError:
    @pytest.mark.parametrize(
        "exc",
        [
            TransientServiceError("reset"),
            ConnectionResetError("ECONNRESET"),
            TimeoutError("timed out"),
            socket.gaierror("ENOTFOUND"),
        ],
    )
    def test_network_class(self, exc):
        assert is_network_error(exc)
        assert classify_error(exc) == ErrorCategory.NETWORK

    def test_by_type(self):
        assert classify_error(ServiceConfigurationError("x")) == ErrorCategory.CONFIGURATION
        assert classify_error(MalformedResponseError("x")) == ErrorCategory.MALFORMED_RESPONSE
        assert classify_error(ImageStorageError("x")) == ErrorCategory.STORAGE

    def test_by_message(self):
        assert classify_error(RuntimeError("fetch failed")) == ErrorCategory.NETWORK
        assert classify_error(RuntimeError("API key not valid")) == ErrorCategory.CONFIGURATION
        assert classify_error(RuntimeError("could not parse output")) == ErrorCategory.MALFORMED_RESPONSE
        assert classify_error(RuntimeError("boom")) == ErrorCategory.UNKNOWN

    def test_json_error_is_malformed(self):
        with pytest.raises(json.JSONDecodeError) as info:
            json.loads("{")
        assert classify_error(info.value) == ErrorCategory.MALFORMED_RESPONSE

    def test_user_message_does_not_leak_details(self):
        message = user_message_for(RuntimeError("psycopg2 password=hunter2 rejected"))
        assert message == USER_MESSAGES[ErrorCategory.UNKNOWN]
        assert "hunter2" not in message

    def test_network_and_configuration_messages(self):
        assert user_message_for(TimeoutError()).startswith("Connection error:")
        assert user_message_for(ServiceConfigurationError("no key")).startswith("Configuration error:")


class TestGeminiHelpers:
    @pytest.mark.parametrize(
        "raw, expected",
        [("3", 3), (" Page 12 \n", 12), ("NONE", None), ("none", None), ("", None), ("0", None), ("?", None)],
    )
    def test_parse_page_number(self, raw, expected):
        assert parse_page_number(raw) == expected

    def test_translate_sdk_errors(self):
        assert isinstance(
            translate_exception(google_exceptions.ServiceUnavailable("down")),
            TransientServiceError,
        )
        assert isinstance(
            translate_exception(google_exceptions.Unauthenticated("bad key")),
            ServiceConfigurationError,
        )
        assert isinstance(translate_exception(ConnectionResetError()), TransientServiceError)

    def test_unknown_errors_pass_through(self):
        error = RuntimeError("boom")
        assert translate_exception(error) is error
