import functools
from typing import Callable, Optional, Sequence

from parcel_assembly.address_book import AddressBook
from parcel_assembly.api.client import ParcelApiClient
from parcel_assembly.api.schemas import Address
from parcel_assembly.map_layer.dev_provider import DevParcelBackend
from parcel_assembly.map_layer.providers import ParcelBackend
from parcel_assembly.settings import Settings, get_settings


def get_backend(settings: Optional[Settings] = None) -> ParcelBackend:
    settings = settings or get_settings()
    if settings.provider == "dev":
        return DevParcelBackend()
    return ParcelApiClient(settings=settings)


def get_address_book(
    backend: ParcelBackend,
    addresses: Optional[Sequence[Address]] = None,
    project_id: Optional[str] = None,
    alert: Optional[Callable[[str], None]] = None,
) -> AddressBook:
    """Address book whose adds and removals go to `backend` when it can take them.

    Only the HTTP client persists project changes, and only for a known
    project. Anything else keeps the list local.
    """

    submit_add = submit_remove = None
    if isinstance(backend, ParcelApiClient) and project_id:
        submit_add = functools.partial(backend.add_to_project, project_id)
        submit_remove = backend.delete_address
    return AddressBook(
        addresses,
        submit_add=submit_add,
        submit_remove=submit_remove,
        alert=alert,
        project_id=project_id,
    )
