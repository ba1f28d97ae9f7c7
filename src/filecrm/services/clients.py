"""Client registration and maintenance, with contract rendering in the background."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from filecrm.constants import CONTRACT_FILE_TEMPLATE
from filecrm.domain.errors import NotFoundError
from filecrm.domain.models import Client, ClientField, ClientStatus, Contact
from filecrm.persistence.queries import (
    clients_for_user,
    contacts_for_client,
    delete_contacts_for_client,
    search_clients,
)
from filecrm.services.documents import contract_placeholders

if TYPE_CHECKING:
    from concurrent.futures import Future

    from filecrm.persistence.entity_store import EntityStore
    from filecrm.services.documents import DocumentRenderer
    from filecrm.utils.concurrency import MutationWorkerPool
    from filecrm.utils.fs import PathLike


@dataclass(frozen=True, slots=True)
class ClientRegistration:
    """The stored client plus the pending contract; the create is done when this returns."""

    client: Client
    contract: Future[Path]


class ClientService:
    def __init__(
        self,
        clients: EntityStore[Client],
        contacts: EntityStore[Contact],
        renderer: DocumentRenderer,
        pool: MutationWorkerPool,
        output_dir: PathLike,
        *,
        logger: Any | None = None,
    ) -> None:
        self._clients = clients
        self._contacts = contacts
        self._renderer = renderer
        self._pool = pool
        self._output_dir = Path(output_dir)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def register(
        self,
        *,
        user_id: int,
        name: str,
        email: str,
        phone: str,
        address: str,
        status: ClientStatus | str = ClientStatus.ACTIVE,
    ) -> ClientRegistration:
        candidate = Client(
            user_id=user_id,
            name=name,
            email=email,
            phone=phone,
            address=address,
            status=status,  # type: ignore[arg-type]
        )
        client = self._clients.create(candidate)
        contract = self._pool.submit("render_contract", self._write_contract, client)
        return ClientRegistration(client=client, contract=contract)

    def get(self, client_id: int) -> Client:
        client = self._clients.find_by_id(client_id)
        if client is None:
            raise NotFoundError(self._clients.name, client_id)
        return client

    def clients_of(self, user_id: int) -> list[Client]:
        return clients_for_user(self._clients, user_id)

    def search(self, term: str) -> list[Client]:
        return search_clients(self._clients, term)

    def update_info(self, client_id: int, field: ClientField | str, value: object) -> Future[Client]:
        """Queue a single-field update; an unknown field name fails here, not in the pool."""

        selector = ClientField.parse(field)
        return self._pool.submit("client_update", self._clients.update_field, client_id, selector, value)

    def mark_deleted(self, client_id: int) -> Future[Client]:
        return self._pool.submit(
            "client_delete", self._clients.update_status, client_id, ClientStatus.DELETE
        )

    def add_contact(
        self,
        *,
        client_id: int,
        name: str,
        email: str,
        phone: str,
        position: str,
    ) -> Contact:
        candidate = Contact(
            client_id=client_id,
            name=name,
            email=email,
            phone=phone,
            position=position,
        )
        self.get(client_id)
        return self._contacts.create(candidate)

    def contacts_of(self, client_id: int) -> list[Contact]:
        return contacts_for_client(self._contacts, client_id)

    def remove_contacts(self, client_id: int, count: int) -> int:
        return delete_contacts_for_client(self._contacts, client_id, count)

    def _write_contract(self, client: Client) -> Path:
        text = self._renderer.render(contract_placeholders(client))
        target = self._output_dir / CONTRACT_FILE_TEMPLATE.format(client_id=client.id)
        saved = self._renderer.save(text, target)
        self._logger.info("contract_written", record_id=client.id, path=str(saved))
        return saved


__all__ = ["ClientRegistration", "ClientService"]
