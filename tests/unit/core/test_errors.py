"""Error hierarchy tests."""

from declient.core.errors import (
    ApiError,
    BindingError,
    CircuitOpenError,
    ConfigurationError,
    DeclientError,
)
from declient.models.response import ApiResponse


class TestErrorHierarchy:
    """All custom errors inherit from DeclientError."""

    def test_api_error_inherits(self) -> None:
        assert issubclass(ApiError, DeclientError)

    def test_circuit_open_is_an_api_error(self) -> None:
        assert issubclass(CircuitOpenError, ApiError)

    def test_binding_error_is_configuration_error(self) -> None:
        assert issubclass(BindingError, ConfigurationError)
        assert issubclass(ConfigurationError, DeclientError)


class TestApiError:
    def test_status_from_response(self) -> None:
        err = ApiError("boom", response=ApiResponse.create_error({"detail": "x"}, 502))
        assert err.status == 502
        assert err.data == {"detail": "x"}

    def test_status_zero_without_response(self) -> None:
        err = ApiError("refused", code="ConnectError")
        assert err.status == 0
        assert err.data is None
        assert err.code == "ConnectError"
        assert str(err) == "refused"


class TestCircuitOpenError:
    def test_attributes(self) -> None:
        exc = CircuitOpenError("UserService", 25.5)
        assert exc.service_name == "UserService"
        assert exc.retry_after == 25.5
        assert exc.code == "CIRCUIT_OPEN"
        assert exc.response is None
        assert "UserService" in str(exc)

    def test_negative_retry_clamped(self) -> None:
        assert CircuitOpenError("test", -5.0).retry_after == 0.0


class TestBindingError:
    def test_message(self) -> None:
        err = BindingError("UserService.get_user", "bad marker")
        assert err.method_name == "UserService.get_user"
        assert "bad marker" in str(err)
