from typing import Annotated

from fastapi import Depends

from up2b.config import settings
from up2b.services.config_store import ConfigStore
from up2b.services.registry import Manager, current_manager
from up2b.services.transport import Transport, get_transport

_store: ConfigStore | None = None


def get_store() -> ConfigStore:
    global _store
    if _store is None:
        _store = ConfigStore(settings.config_path)
    return _store


def get_http_transport(store: Annotated[ConfigStore, Depends(get_store)]) -> Transport:
    return get_transport(store.snapshot().active_proxy)


def get_manager(
    store: Annotated[ConfigStore, Depends(get_store)],
    transport: Annotated[Transport, Depends(get_http_transport)],
) -> Manager:
    return current_manager(store, transport)


StoreDep = Annotated[ConfigStore, Depends(get_store)]
TransportDep = Annotated[Transport, Depends(get_http_transport)]
ManagerDep = Annotated[Manager, Depends(get_manager)]
