import importlib
from typing import Any, Callable, Dict

from api import TOOL_CLIENTS
from llm import LLMS
from routers import ROUTERS


def lazy_external_import(module_name: str, class_name: str) -> Callable[..., Any]:
    """Return a factory that imports ``class_name`` from ``module_name`` on first call."""

    def import_class(*args: Any, **kwargs: Any):
        module = importlib.import_module(module_name)
        cls = getattr(module, class_name)
        return cls(*args, **kwargs)

    return import_class


def _lookup(registry: Dict[str, str], kind: str, name: str) -> Callable[..., Any]:
    try:
        import_path = registry[name]
    except KeyError:
        raise ValueError(f"Unknown {kind} {name!r}; expected one of {sorted(registry)}") from None
    return lazy_external_import(import_path, name)


def get_router_class(router_name: str) -> Callable[..., Any]:
    return _lookup(ROUTERS, "router", router_name)


def get_tool_client_class(client_name: str) -> Callable[..., Any]:
    return _lookup(TOOL_CLIENTS, "tool client", client_name)


def get_llm_class(llm_name: str) -> Callable[..., Any]:
    return _lookup(LLMS, "llm", llm_name)
