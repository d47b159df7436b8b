"""Unit tests for the API key access gate."""

from unittest.mock import patch

import pytest

from app.core.auth import (
    check_access,
    is_mutating,
    is_protected_path,
    parse_api_keys,
    requires_api_key,
    validate_api_key,
)
from app.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    def test_parse_single_key(self) -> None:
        assert parse_api_keys("secret-key-123") == {"secret-key-123"}

    def test_parse_keys_with_whitespace(self) -> None:
        assert parse_api_keys("key1 , key2  ,  key3") == {"key1", "key2", "key3"}

    @pytest.mark.parametrize("value", [None, "", "   ,  ,  "])
    def test_parse_empty_inputs_return_empty_set(self, value) -> None:
        assert parse_api_keys(value) == set()

    def test_parse_removes_duplicate_keys(self) -> None:
        assert parse_api_keys("key1,key2,key1") == {"key1", "key2"}


class TestScope:
    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE", "delete"])
    def test_mutating_methods(self, method: str) -> None:
        assert is_mutating(method) is True

    @pytest.mark.parametrize("method", ["GET", "HEAD", "OPTIONS", "TRACE"])
    def test_non_mutating_methods(self, method: str) -> None:
        assert is_mutating(method) is False

    @pytest.mark.parametrize("method", ["HEAD", "OPTIONS", "TRACE", "POST", "delete"])
    def test_every_method_but_get_needs_a_key(self, method: str) -> None:
        assert requires_api_key(method) is True

    @pytest.mark.parametrize("method", ["GET", "get"])
    def test_get_needs_no_key(self, method: str) -> None:
        assert requires_api_key(method) is False

    @pytest.mark.parametrize("path", ["/users", "/users/", "/users/7", "/users/7/extra"])
    def test_protected_paths(self, path: str) -> None:
        assert is_protected_path(path, "/users") is True

    @pytest.mark.parametrize("path", ["/", "/search", "/usersettings", "/health"])
    def test_unprotected_paths(self, path: str) -> None:
        assert is_protected_path(path, "/users") is False


class TestValidateAPIKey:
    """Test core API key validation logic."""

    @patch("app.core.auth.settings")
    def test_validate_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        validate_api_key("any-random-key")
        validate_api_key(None)

    @patch("app.core.auth.settings")
    def test_validate_raises_when_no_keys_configured(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = None

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("secret-key-123")

        assert exc_info.value.code == "api_keys_not_configured"

    @patch("app.core.auth.settings")
    def test_validate_accepts_configured_keys(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1,valid-key-2"

        validate_api_key("valid-key-1")
        validate_api_key("valid-key-2")

    @patch("app.core.auth.settings")
    def test_validate_rejects_invalid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("invalid-key")

        assert exc_info.value.code == "invalid_api_key"

    @pytest.mark.parametrize("value", [None, ""])
    @patch("app.core.auth.settings")
    def test_validate_rejects_missing_key(self, mock_settings, value) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key(value)

        assert exc_info.value.code == "missing_api_key"


class TestCheckAccess:
    """The gate decision with the default configuration."""

    def test_get_always_allowed(self) -> None:
        assert check_access("GET", None) is True
        assert check_access("GET", "wrong") is True

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
    def test_mutation_requires_shared_secret(self, method: str) -> None:
        assert check_access(method, "secret-key-123") is True
        assert check_access(method, None) is False
        assert check_access(method, "secret-key-124") is False

    @pytest.mark.parametrize("method", ["HEAD", "OPTIONS"])
    def test_other_methods_require_shared_secret(self, method: str) -> None:
        assert check_access(method, None) is False
        assert check_access(method, "secret-key-123") is True
