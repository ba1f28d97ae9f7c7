"""
filecrm unit tests — client service

File: tests/unit/services/test_client_service.py

Purpose
- Validate client registration with background contract rendering and the
  queued maintenance operations built on the worker pool.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from filecrm.domain.errors import NotFoundError, ValidationError
from filecrm.domain.models import ClientField, ClientStatus
from filecrm.persistence.stores import StoreSet, open_stores
from filecrm.services.clients import ClientService
from filecrm.services.documents import DocumentRenderer
from filecrm.utils.concurrency import MutationWorkerPool, wait_for


@pytest.fixture()
def stores(tmp_path: Path) -> StoreSet:
    return open_stores(tmp_path / "data")


@pytest.fixture()
def pool() -> Iterator[MutationWorkerPool]:
    with MutationWorkerPool(4) as worker_pool:
        yield worker_pool


@pytest.fixture()
def service(stores: StoreSet, pool: MutationWorkerPool, tmp_path: Path) -> ClientService:
    return ClientService(
        stores.clients,
        stores.contacts,
        DocumentRenderer(),
        pool,
        tmp_path / "contracts",
    )


def _register(service: ClientService, name: str = "Acme") -> object:
    return service.register(
        user_id=7,
        name=name,
        email="a@x.com",
        phone="12345",
        address="Main St",
    )


def test_register_stores_client_and_writes_contract(
    service: ClientService,
    stores: StoreSet,
    tmp_path: Path,
) -> None:
    registration = service.register(
        user_id=7,
        name="Acme",
        email="a@x.com",
        phone="12345",
        address="Main St",
    )

    assert registration.client.id == 1
    assert stores.clients.find_by_id(1) == registration.client
    contract_path = wait_for(registration.contract, timeout=5)
    assert contract_path == tmp_path / "contracts" / "sales_contract_1.txt"
    text = contract_path.read_text(encoding="utf-8")
    assert "Contract no.: 1" in text
    assert "Client: Acme" in text
    assert "Address: Main St" in text


def test_register_validates_before_writing(service: ClientService, stores: StoreSet) -> None:
    with pytest.raises(ValidationError):
        service.register(user_id=7, name="", email="a@x.com", phone="1", address="A")
    with pytest.raises(ValidationError):
        service.register(
            user_id=7, name="Acme", email="a@x.com", phone="1", address="A", status="GONE"
        )

    assert stores.clients.find_all() == []


def test_update_info_and_mark_deleted_run_in_pool(service: ClientService) -> None:
    _register(service)

    updated = wait_for(service.update_info(1, "phone", "999"), timeout=5)
    deleted = wait_for(service.mark_deleted(1), timeout=5)

    assert updated.phone == "999"
    assert deleted.status is ClientStatus.DELETE
    assert service.get(1).phone == "999"


def test_update_info_rejects_unknown_field_immediately(service: ClientService) -> None:
    _register(service)

    with pytest.raises(ValidationError):
        service.update_info(1, "colour", "red")


def test_update_of_missing_client_fails_on_future(service: ClientService) -> None:
    future = service.update_info(99, ClientField.NAME, "Ghost")

    with pytest.raises(NotFoundError):
        wait_for(future, timeout=5)


def test_lookups(service: ClientService) -> None:
    _register(service, "Acme")
    _register(service, "Globex")

    assert [client.name for client in service.clients_of(7)] == ["Acme", "Globex"]
    assert [client.id for client in service.search("Globex")] == [2]
    with pytest.raises(NotFoundError):
        service.get(3)


def test_contacts_require_existing_client(service: ClientService) -> None:
    _register(service)

    service.add_contact(client_id=1, name="Bob", email="b@x.com", phone="1", position="CEO")
    service.add_contact(client_id=1, name="Eve", email="e@x.com", phone="2", position="CFO")
    with pytest.raises(NotFoundError):
        service.add_contact(client_id=5, name="Zed", email="z@x.com", phone="3", position="-")

    assert [contact.name for contact in service.contacts_of(1)] == ["Bob", "Eve"]
    assert service.remove_contacts(1, 1) == 1
    assert [contact.name for contact in service.contacts_of(1)] == ["Eve"]
