"""
filecrm — end-to-end smoke test

File: tests/smoke/test_end_to_end.py

Purpose
- Walk a sales workflow through the services and stores, then reopen the data
  directory as a fresh process would and check that everything survived.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import pytest

from filecrm.domain.models import (
    Client,
    ClientStatus,
    Deal,
    DealField,
    DealStatus,
    Task,
    TaskField,
    TaskStatus,
    UserRole,
    UserStatus,
)
from filecrm.persistence import queries
from filecrm.persistence.stores import open_stores
from filecrm.services.accounts import AccountService
from filecrm.services.clients import ClientService
from filecrm.services.documents import DocumentRenderer
from filecrm.services.messaging import MessagingService
from filecrm.services.notifications import LoggingMailSender
from filecrm.utils.concurrency import MutationWorkerPool, wait_for


@pytest.mark.smoke
def test_sales_workflow_survives_restart(tmp_path: Path) -> None:
    data_dir = tmp_path / "data"
    stores = open_stores(data_dir)
    mailer = LoggingMailSender()
    accounts = AccountService(stores.users, mailer)
    messaging = MessagingService(stores.messages, clock=lambda: datetime(2025, 5, 1, 12, 0, 0))

    manager = accounts.sign_up(
        email="mia@example.com",
        password="temp-1",
        name="Mia",
        last_name="Stone",
        role=UserRole.MANAGER,
    )
    assistant = accounts.sign_up(
        email="sam@example.com",
        password="temp-2",
        name="Sam",
        last_name="Reed",
        role=UserRole.SERVICE,
    )
    assert accounts.sign_in("mia@example.com", "temp-1")

    with MutationWorkerPool(4) as pool:
        clients = ClientService(
            stores.clients,
            stores.contacts,
            DocumentRenderer(),
            pool,
            tmp_path / "contracts",
        )
        registration = clients.register(
            user_id=manager.id,
            name="Acme",
            email="buy@acme.test",
            phone="555-0100",
            address="1 Main St",
        )
        contract = wait_for(registration.contract, timeout=10)
        client_id = registration.client.id
        clients.add_contact(
            client_id=client_id,
            name="Bob",
            email="bob@acme.test",
            phone="555-0101",
            position="Buyer",
        )

        deal = stores.deals.create(
            Deal(
                title="Annual licence",
                client_id=client_id,
                user_id=manager.id,
                amount=12_500,
                status=DealStatus.NEW,
                created_date=date(2025, 5, 1),
            )
        )
        task = stores.tasks.create(
            Task(
                client_id=client_id,
                title="Kick-off call",
                description="Agree scope",
                assigned_to=assistant.id,
                due_date="2025-05-02 10:00:00",
                status=TaskStatus.CALL,
            )
        )
        futures = [
            pool.submit(
                "close_deal",
                stores.deals.update_field,
                deal.id,
                DealField.CLOSED_DATE,
                "2025-05-20",
            ),
            pool.submit("win_deal", stores.deals.update_status, deal.id, DealStatus.COMPLETED),
            pool.submit(
                "task_status", stores.tasks.update_field, task.id, TaskField.STATUS, "meeting"
            ),
            clients.update_info(client_id, "phone", "555-0199"),
        ]
        for future in futures:
            wait_for(future, timeout=10)
        assert pool.drain(timeout=10) == []

    messaging.send(manager.id, assistant.id, "Acme signed")
    accounts.dismiss(assistant.id)

    assert contract.name == f"sales_contract_{client_id}.txt"
    assert len(mailer.sent) == 2

    reopened = open_stores(data_dir)
    client = reopened.clients.find_by_id(client_id)
    assert client is not None
    assert (client.phone, client.status) == ("555-0199", ClientStatus.ACTIVE)
    reopened_deal = reopened.deals.find_by_id(deal.id)
    assert reopened_deal is not None
    assert reopened_deal.status is DealStatus.COMPLETED
    assert reopened_deal.closed_date == date(2025, 5, 20)
    assert reopened_deal.amount == 12_500.0
    reopened_task = reopened.tasks.find_by_id(task.id)
    assert reopened_task is not None
    assert reopened_task.status is TaskStatus.MEETING
    assert [c.name for c in queries.contacts_for_client(reopened.contacts, client_id)] == ["Bob"]
    conversation = queries.messages_between(reopened.messages, assistant.id, manager.id)
    assert [message.content for message in conversation] == ["Acme signed"]
    fired = reopened.users.find_by_id(assistant.id)
    assert fired is not None
    assert fired.status is UserStatus.FIRED

    next_client = reopened.clients.create(
        Client(user_id=manager.id, name="Globex", email="g@x.test", phone="1", address="2 Elm St")
    )
    assert next_client.id == client_id + 1
