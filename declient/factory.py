"""Composition: turn a declared service class into a working client.

``create_api_service`` reads the class's descriptors once and returns an
instance of a freshly generated subclass whose declared methods are
closures over a ``ServiceDispatcher``.  The declared class itself is left
untouched.
"""

from __future__ import annotations

import inspect
from collections.abc import Iterator, Mapping
from typing import Any, TypeVar

from pydantic import ValidationError

from declient.binding_registry import BindingRegistry, InvocationDescriptor
from declient.core.config import ServiceConfig, Settings
from declient.core.errors import ConfigurationError
from declient.dispatcher import ServiceDispatcher
from declient.transport import Transport

T = TypeVar("T")

_registry = BindingRegistry()


def _coerce_config(config: ServiceConfig | Mapping[str, Any]) -> ServiceConfig:
    if isinstance(config, ServiceConfig):
        return config
    try:
        return ServiceConfig.model_validate(dict(config))
    except (ValidationError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid service configuration: {exc}") from exc


def _generate_method(descriptor: InvocationDescriptor) -> Any:
    signature = descriptor.signature
    names = list(signature.parameters)

    async def method(self, *args: Any, **kwargs: Any) -> Any:
        bound = signature.bind(*args, **kwargs)
        bound.apply_defaults()
        arguments = [bound.arguments.get(name) for name in names]
        return await self.declient_dispatcher.invoke(descriptor, arguments)

    self_param = inspect.Parameter("self", inspect.Parameter.POSITIONAL_OR_KEYWORD)
    method.__name__ = descriptor.name
    method.__signature__ = signature.replace(parameters=[self_param, *signature.parameters.values()])
    return method


async def _aclose(self) -> None:
    await self.declient_dispatcher.aclose()


async def _aenter(self):
    return self


async def _aexit(self, *exc_info: Any) -> None:
    await self.declient_dispatcher.aclose()


def create_api_service(
    service_cls: type[T],
    config: ServiceConfig | Mapping[str, Any],
    *,
    transport: Transport | None = None,
    settings: Settings | None = None,
    **dispatcher_kwargs: Any,
) -> T:
    """Compose *service_cls* into a callable client.

    Args:
        service_cls: Class whose methods carry ``@get``/``@post``/... .
        config:      ``ServiceConfig`` or an equivalent mapping.
        transport:   Transport override (tests, custom clients).
        settings:    Library defaults; loaded from the environment if omitted.

    Returns:
        An instance of *service_cls* (via a generated subclass) whose
        declared methods issue requests.  It also exposes
        ``declient_dispatcher``, ``aclose()`` and ``async with`` support.

    Raises:
        ConfigurationError: If *config* is malformed.
        BindingError: If a declared method cannot be bound.
    """
    config = _coerce_config(config)
    definition = _registry.from_service(service_cls)
    dispatcher = ServiceDispatcher(
        service_cls.__name__,
        config,
        transport=transport,
        settings=settings,
        **dispatcher_kwargs,
    )

    namespace: dict[str, Any] = {name: _generate_method(d) for name, d in definition.descriptors.items()}
    namespace.update(
        declient_dispatcher=dispatcher,
        declient_definition=definition,
        aclose=_aclose,
        __aenter__=_aenter,
        __aexit__=_aexit,
        __module__=service_cls.__module__,
        __qualname__=service_cls.__qualname__,
    )
    generated = type(service_cls.__name__, (service_cls,), namespace)
    return generated()


class ServiceBundle:
    """Several composed services sharing one configuration.

    Services are reachable as attributes or items; each keeps its own
    transport and circuit breaker.
    """

    def __init__(self, services: dict[str, Any]) -> None:
        self._services = services
        for key, service in services.items():
            setattr(self, key, service)

    def __getitem__(self, key: str) -> Any:
        return self._services[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._services)

    def __len__(self) -> int:
        return len(self._services)

    async def aclose(self) -> None:
        for service in self._services.values():
            await service.aclose()

    async def __aenter__(self) -> ServiceBundle:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def create_api_services(
    config: ServiceConfig | Mapping[str, Any],
    /,
    *,
    settings: Settings | None = None,
    **services: type,
) -> ServiceBundle:
    """Compose every class in *services* with the same *config*.

    Example::

        api = create_api_services(config, users=UserService, posts=PostService)
        await api.users.get_user(1)
    """
    config = _coerce_config(config)
    return ServiceBundle(
        {key: create_api_service(cls, config, settings=settings) for key, cls in services.items()}
    )
