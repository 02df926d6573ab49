"""
Management API client - service and event registration over mutual TLS.

Payloads are passed through as JSON-compatible mappings; building them is the
caller's business. A registered service description is kept in the store as
``<id>.json`` so later updates can start from it. URLs come from the runtime
info, falling back to the URLs announced at enrollment.
"""

import json
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from .controller import LifecycleController
from .exceptions import MissingEndpointError, RegistrationError, StorageError
from .schemas import EventInfo, SubscribedEvents
from .storage import KeyMaterialStore
from .utils.http import body_text, parse_json_body
from .utils.logging import get_logger

logger = get_logger(__name__)


class ManagementClient:
    """Authenticated calls against the metadata and events APIs of an enrolled identity."""

    def __init__(self, controller: LifecycleController, store: Optional[KeyMaterialStore] = None):
        self.controller = controller
        # Service descriptions live next to the identity unless told otherwise
        self.store = store if store is not None else controller.store

    # ==========================================================================
    # URL resolution
    # ==========================================================================

    def _url(self, runtime_attr: str, enrollment_attr: str, label: str, operation: str) -> str:
        runtime_info = self.controller.runtime_info
        enrollment_info = self.controller.enrollment_info
        url = getattr(runtime_info.urls, runtime_attr, "") if runtime_info else ""
        if not url and enrollment_info is not None:
            url = getattr(enrollment_info.api, enrollment_attr, "")
        if not url:
            raise MissingEndpointError(label, operation)
        return url

    def metadata_url(self, operation: str = "register service") -> str:
        return self._url("metadata_url", "metadata_url", "metadata URL", operation)

    def events_url(self) -> str:
        return self._url("events_url", "events_url", "events URL", "add event")

    def events_info_url(self) -> str:
        return self._url("events_info_url", "events_info_url", "events info URL", "get subscribed events")

    # ==========================================================================
    # Services
    # ==========================================================================

    def register_service(self, description: Mapping[str, Any]) -> str:
        """
        Register a service description; returns the id assigned by the server.

        The description is saved as ``<id>.json`` once the server accepted it.
        """
        client = self.controller.secure_client
        url = self.metadata_url("register service")
        response = client.post(url, json=dict(description), operation="register service")
        if response.status_code != 200:
            raise RegistrationError("register service", url, response.status_code, body_text(response))

        try:
            service_id = parse_json_body(response).get("id")
        except ValueError as e:
            raise RegistrationError("register service", url, response.status_code, body_text(response)) from e
        if not service_id:
            raise RegistrationError("register service", url, response.status_code, body_text(response))

        service_id = str(service_id)
        self._save_description(service_id, description)
        logger.info(f"Registered service {service_id}")
        return service_id

    def update_service(self, service_id: str, description: Optional[Mapping[str, Any]] = None) -> None:
        """
        Replace a registered service description.

        Without ``description`` the saved ``<id>.json`` is sent again, which
        raises ArtifactNotFoundError if the service was never registered here.
        """
        client = self.controller.secure_client
        url = f"{self.metadata_url('update service').rstrip('/')}/{service_id}"
        payload = dict(description) if description is not None else self.saved_description(service_id)
        response = client.request("PUT", url, json=payload, operation="update service")
        if response.status_code != 200:
            raise RegistrationError("update service", url, response.status_code, body_text(response))

        self._save_description(service_id, payload)
        logger.info(f"Updated service {service_id}")

    def delete_service(self, service_id: str) -> None:
        client = self.controller.secure_client
        url = f"{self.metadata_url('delete service').rstrip('/')}/{service_id}"
        response = client.request("DELETE", url, operation="delete service")
        if response.status_code != 204:
            raise RegistrationError("delete service", url, response.status_code, body_text(response))
        logger.info(f"Deleted service {service_id}")

    def saved_description(self, service_id: str) -> Dict[str, Any]:
        """Service description saved by the last successful register/update."""
        name = f"{service_id}.json"
        try:
            return json.loads(self.store.read(name))
        except ValueError as e:
            raise StorageError("saved service description is corrupt", name=name) from e

    def _save_description(self, service_id: str, description: Mapping[str, Any]) -> None:
        self.store.write(f"{service_id}.json", json.dumps(dict(description)).encode())

    # ==========================================================================
    # Events
    # ==========================================================================

    def add_event(self, event_spec: Mapping[str, Any]) -> None:
        client = self.controller.secure_client
        url = self.events_url()
        response = client.post(url, json=dict(event_spec), operation="add event")
        if response.status_code != 200:
            raise RegistrationError("add event", url, response.status_code, body_text(response))
        logger.info("Registered event specification")

    def get_subscribed_events(self) -> List[EventInfo]:
        client = self.controller.secure_client
        url = self.events_info_url()
        response = client.get(url, operation="get subscribed events")
        if response.status_code != 200:
            raise RegistrationError("get subscribed events", url, response.status_code, body_text(response))
        try:
            return list(SubscribedEvents.model_validate_json(response.content).events_info)
        except ValidationError as e:
            raise RegistrationError("get subscribed events", url, response.status_code, body_text(response)) from e
