"""Service catalog: the services clients can book."""
from typing import List

from booking import config
from booking.errors import NotFoundError
from booking.logging_config import get_logger
from booking.models import Service, ServiceCreate, ServicePatch, apply_patch
from booking.storage import KeyValueStore, load_collection, save_collection

logger = get_logger(__name__)


def default_services() -> List[Service]:
    return [Service(**service) for service in config.DEFAULT_SERVICES]


class ServiceCatalog:
    """
    Service CRUD.

    Appointments hold a snapshot of their service, so edits and deletions
    here never alter existing bookings.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._services = load_collection(store, config.SERVICES_KEY, Service, default_services)

    def _save(self) -> None:
        save_collection(self.store, config.SERVICES_KEY, self._services)

    def list_services(self) -> List[Service]:
        return list(self._services)

    def get_service(self, service_id: str) -> Service:
        service = next((s for s in self._services if s.id == service_id), None)
        if service is None:
            raise NotFoundError("service", service_id)
        return service

    def add_service(self, data: ServiceCreate) -> Service:
        service = Service(**data.model_dump())
        self._services = [*self._services, service]
        self._save()
        logger.info("service_added", service_id=service.id, name=service.name)
        return service

    def update_service(self, service_id: str, patch: ServicePatch) -> Service:
        updated = apply_patch(self.get_service(service_id), patch)
        self._services = [updated if s.id == service_id else s for s in self._services]
        self._save()
        logger.info("service_updated", service_id=service_id)
        return updated

    def delete_service(self, service_id: str) -> None:
        self.get_service(service_id)
        self._services = [s for s in self._services if s.id != service_id]
        self._save()
        logger.info("service_deleted", service_id=service_id)
