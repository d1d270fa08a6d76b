"""Method binding registry.

Decorators record per-method metadata in ``metadata``, an explicit table
keyed by function identity.  When a service class is composed,
``BindingRegistry.from_service`` reads that table once and freezes each
declared method into an ``InvocationDescriptor``.
"""

from __future__ import annotations

import builtins
import inspect
import logging
import typing
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any

from declient.core.errors import BindingError

logger = logging.getLogger(__name__)


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ParamRole(str, Enum):
    PATH = "path"
    QUERY = "query"
    BODY = "body"
    HEADER = "header"


@dataclass(frozen=True)
class ParamMarker:
    """Role marker placed in ``Annotated[...]`` parameter hints."""

    role: ParamRole
    name: str | None = None


# ── Descriptor records ─────────────────────────────────────────────────


@dataclass(frozen=True)
class ParameterBinding:
    role: ParamRole
    name: str | None
    argument_index: int


@dataclass(frozen=True)
class ErrorHandler:
    """Error handler; ``statuses is None`` marks a catch-all."""

    statuses: frozenset[int] | None
    handler: Callable[[Any], Any]

    @property
    def is_catch_all(self) -> bool:
        return self.statuses is None


@dataclass(frozen=True)
class SuccessHandler:
    statuses: frozenset[int]
    handler: Callable[[Any], Any]


@dataclass(frozen=True)
class InvocationDescriptor:
    """Immutable description of one declared service method.

    Attributes:
        name:                  Method name on the service class.
        http_method:           HTTP verb.
        path_template:         Path with ``{name}`` placeholders.
        parameter_bindings:    Role bindings, one per bound argument index.
        signature:             Declared signature without ``self``.
        error_handlers:        In declaration order.
        success_handlers:      In declaration order.
        response_interceptors: Method-level interceptors, in declaration order.
        retry_hook:            Optional retry notification callable.
    """

    name: str
    http_method: HttpMethod
    path_template: str
    parameter_bindings: tuple[ParameterBinding, ...]
    signature: inspect.Signature
    error_handlers: tuple[ErrorHandler, ...] = ()
    success_handlers: tuple[SuccessHandler, ...] = ()
    response_interceptors: tuple[Callable[[Any], Any], ...] = ()
    retry_hook: Callable[[int, Any], Any] | None = None


# ── Registration table ─────────────────────────────────────────────────


@dataclass
class MethodMetadata:
    """Mutable metadata accumulated by decorators for one function."""

    http_method: HttpMethod | None = None
    path_template: str | None = None
    error_handlers: list[ErrorHandler] = field(default_factory=list)
    success_handlers: list[SuccessHandler] = field(default_factory=list)
    response_interceptors: list[Callable[[Any], Any]] = field(default_factory=list)
    retry_hook: Callable[[int, Any], Any] | None = None


class MetadataTable:
    """Function-identity → ``MethodMetadata`` store written by decorators."""

    def __init__(self) -> None:
        self._entries: dict[Callable[..., Any], MethodMetadata] = {}

    def entry(self, func: Callable[..., Any]) -> MethodMetadata:
        """Return (or create) the metadata record for *func*."""
        if func not in self._entries:
            self._entries[func] = MethodMetadata()
        return self._entries[func]

    def get(self, func: Any) -> MethodMetadata | None:
        try:
            return self._entries.get(func)
        except TypeError:  # unhashable class attribute
            return None

    def rekey(self, old: Callable[..., Any], new: Callable[..., Any]) -> None:
        """Move *old*'s record to *new* (used when a decorator wraps)."""
        if old in self._entries:
            self._entries[new] = self._entries.pop(old)

    def __contains__(self, func: object) -> bool:
        return self.get(func) is not None


metadata = MetadataTable()


# ── Service definition ─────────────────────────────────────────────────


@dataclass(frozen=True)
class ServiceDefinition:
    """All descriptors of one service class, looked up by name or function."""

    service_name: str
    descriptors: dict[str, InvocationDescriptor]
    by_function: dict[Callable[..., Any], InvocationDescriptor]

    def get(self, method: str | Callable[..., Any]) -> InvocationDescriptor | None:
        if isinstance(method, str):
            return self.descriptors.get(method)
        return self.by_function.get(method)

    def __iter__(self):
        return iter(self.descriptors.values())

    def __len__(self) -> int:
        return len(self.descriptors)


class BindingRegistry:
    """Builds and caches ``ServiceDefinition`` objects per service class.

    Args:
        table: Metadata table to read, the module-level one by default.
    """

    def __init__(self, table: MetadataTable | None = None) -> None:
        self._table = table or metadata
        self._definitions: dict[type, ServiceDefinition] = {}

    def from_service(self, service_cls: type) -> ServiceDefinition:
        """Return the (cached) definition for *service_cls*.

        Raises:
            BindingError: If a declared method cannot be bound.
        """
        if service_cls not in self._definitions:
            self._definitions[service_cls] = self._build(service_cls)
        return self._definitions[service_cls]

    def _build(self, service_cls: type) -> ServiceDefinition:
        descriptors: dict[str, InvocationDescriptor] = {}
        by_function: dict[Callable[..., Any], InvocationDescriptor] = {}
        for attr_name in dir(service_cls):
            func = inspect.getattr_static(service_cls, attr_name)
            entry = self._table.get(func)
            if entry is None or entry.http_method is None:
                continue
            descriptor = build_descriptor(attr_name, func, entry, qualname=f"{service_cls.__name__}.{attr_name}")
            descriptors[attr_name] = descriptor
            by_function[func] = descriptor
        logger.debug("Bound %d methods on %s", len(descriptors), service_cls.__name__)
        return ServiceDefinition(service_cls.__name__, descriptors, by_function)


def build_descriptor(
    name: str,
    func: Callable[..., Any],
    entry: MethodMetadata,
    *,
    qualname: str | None = None,
) -> InvocationDescriptor:
    """Freeze *entry* for *func* into an ``InvocationDescriptor``."""
    qualname = qualname or name
    if entry.http_method is None or entry.path_template is None:
        raise BindingError(qualname, "missing HTTP verb and path")

    target = inspect.unwrap(func)
    parameters = list(inspect.signature(target).parameters.values())
    if not parameters:
        raise BindingError(qualname, "service methods must accept 'self'")
    parameters = parameters[1:]
    hints = _parameter_hints(target, parameters, qualname)

    bindings: list[ParameterBinding] = []
    for index, param in enumerate(parameters):
        marker = _find_marker(hints.get(param.name, param.annotation))
        if marker is None:
            continue
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            raise BindingError(qualname, f"'{param.name}' cannot carry a {marker.role.value} binding")
        if marker.role != ParamRole.BODY:
            bound_name = marker.name or param.name
        else:
            bound_name = None
        bindings.append(ParameterBinding(marker.role, bound_name, index))

    if sum(1 for b in bindings if b.role == ParamRole.BODY) > 1:
        logger.warning("%s declares more than one body parameter; the last one wins", qualname)

    return InvocationDescriptor(
        name=name,
        http_method=entry.http_method,
        path_template=entry.path_template,
        parameter_bindings=tuple(bindings),
        signature=inspect.Signature(parameters),
        error_handlers=tuple(entry.error_handlers),
        success_handlers=tuple(entry.success_handlers),
        response_interceptors=tuple(entry.response_interceptors),
        retry_hook=entry.retry_hook,
    )


class _LenientNamespace(dict):
    """Evaluation namespace in which unknown names stand in as ``Any``."""

    def __missing__(self, key: str) -> Any:
        return Any


def _parameter_hints(func: Callable[..., Any], parameters: list[inspect.Parameter], qualname: str) -> dict[str, Any]:
    """Resolved annotations including ``Annotated`` extras.

    If some annotation cannot be resolved (a class local to a function, or
    a forward reference defined later), each parameter is evaluated on its
    own with unknown names read as ``Any``, so binding markers survive.

    Raises:
        BindingError: If an ``Annotated`` parameter still cannot be evaluated.
    """
    try:
        return typing.get_type_hints(func, include_extras=True)
    except NameError:
        logger.debug("Unresolved annotations on %s; resolving parameters one by one", qualname)

    globalns = getattr(func, "__globals__", {})
    namespace = _LenientNamespace(vars(builtins))
    namespace.update(globalns)
    hints: dict[str, Any] = {}
    for param in parameters:
        annotation = param.annotation
        if not isinstance(annotation, str):
            hints[param.name] = annotation
            continue
        try:
            hints[param.name] = eval(annotation, globalns, namespace)
        except Exception as exc:
            if "Annotated" in annotation:
                raise BindingError(qualname, f"cannot resolve the annotation of '{param.name}': {exc}") from exc
    return hints


def _find_marker(hint: Any) -> ParamMarker | None:
    if typing.get_origin(hint) is not Annotated:
        return None
    for extra in hint.__metadata__:
        if isinstance(extra, ParamMarker):
            return extra
    return None
