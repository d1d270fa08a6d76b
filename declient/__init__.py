"""declient — declarative, resilient async HTTP service clients.

Declare a service as a class of annotated ``async def`` methods, then
build it with ``create_api_service``::

    class UserService:
        @get("/users/{user_id}")
        async def get_user(self, user_id: Annotated[int, Path()]) -> dict: ...

    users = create_api_service(UserService, ServiceConfig(base_url="https://api.example.com"))
    user = await users.get_user(1)
"""

from declient.binding_registry import HttpMethod, InvocationDescriptor, ParamRole
from declient.core.config import AuthorizationType, ServiceConfig, Settings
from declient.core.errors import (
    ApiError,
    BindingError,
    CircuitOpenError,
    ConfigurationError,
    DeclientError,
)
from declient.decorators import (
    Body,
    Header,
    Path,
    Query,
    delete,
    get,
    on_error,
    on_retrying,
    on_success,
    patch,
    post,
    put,
    response_interceptor,
)
from declient.factory import ServiceBundle, create_api_service, create_api_services
from declient.models.policy import CircuitBreakerPolicy, ResiliencePolicy, RetryPolicy
from declient.models.response import ApiResponse, RequestContext
from declient.resilience.policy import DEFAULT_RESILIENCE_POLICY, merge_resilience_policies
from declient.transport import HttpxTransport, Transport

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_RESILIENCE_POLICY",
    "ApiError",
    "ApiResponse",
    "AuthorizationType",
    "BindingError",
    "Body",
    "CircuitBreakerPolicy",
    "CircuitOpenError",
    "ConfigurationError",
    "DeclientError",
    "Header",
    "HttpMethod",
    "HttpxTransport",
    "InvocationDescriptor",
    "ParamRole",
    "Path",
    "Query",
    "RequestContext",
    "ResiliencePolicy",
    "RetryPolicy",
    "ServiceBundle",
    "ServiceConfig",
    "Settings",
    "Transport",
    "create_api_service",
    "create_api_services",
    "delete",
    "get",
    "merge_resilience_policies",
    "on_error",
    "on_retrying",
    "on_success",
    "patch",
    "post",
    "put",
    "response_interceptor",
]
