"""Per-entity lookups built on ``search_by``: linear scans, no durable index."""

from __future__ import annotations

from typing import TYPE_CHECKING

from filecrm.domain.errors import ValidationError

if TYPE_CHECKING:
    from filecrm.domain.models import Client, Contact, Deal, Message, Task, User
    from filecrm.persistence.entity_store import CachedEntityStore, EntityStore


def find_user_by_email(users: EntityStore[User], email: str) -> User | None:
    matches = users.search_by(lambda user: user.email == email)
    return matches[0] if matches else None


def clients_for_user(clients: EntityStore[Client], user_id: int) -> list[Client]:
    return clients.search_by(lambda client: client.user_id == user_id)


def search_clients(clients: EntityStore[Client], term: str) -> list[Client]:
    """
    Exact match on name, email or phone.

    A term of ASCII digits also matches the client id.
    """

    if not isinstance(term, str) or not term.strip():
        raise ValidationError("search.term", "must not be empty")
    needle = term.strip()
    record_id = int(needle) if needle.isascii() and needle.isdigit() else None

    def _matches(client: Client) -> bool:
        if record_id is not None and client.id == record_id:
            return True
        return needle in (client.name, client.email, client.phone)

    return clients.search_by(_matches)


def contacts_for_client(contacts: EntityStore[Contact], client_id: int) -> list[Contact]:
    return contacts.search_by(lambda contact: contact.client_id == client_id)


def delete_contacts_for_client(
    contacts: EntityStore[Contact],
    client_id: int,
    count: int,
) -> int:
    """Remove the first ``count`` contacts of a client in file order."""

    if count < 1:
        raise ValidationError("contacts.count", "must be >= 1")
    return contacts.delete_where(lambda contact: contact.client_id == client_id, limit=count)


def deals_for_client(deals: EntityStore[Deal], client_id: int) -> list[Deal]:
    return deals.search_by(lambda deal: deal.client_id == client_id)


def deals_for_user(deals: EntityStore[Deal], user_id: int) -> list[Deal]:
    return deals.search_by(lambda deal: deal.user_id == user_id)


def tasks_for_client(tasks: CachedEntityStore[Task], client_id: int) -> list[Task]:
    return tasks.search_by(lambda task: task.client_id == client_id)


def tasks_assigned_to(tasks: CachedEntityStore[Task], user_id: int) -> list[Task]:
    return tasks.search_by(lambda task: task.assigned_to == user_id)


def messages_between(
    messages: EntityStore[Message],
    sender_id: int,
    receiver_id: int,
) -> list[Message]:
    """Messages exchanged in either direction, in file order."""

    pair = {sender_id, receiver_id}
    return messages.search_by(lambda message: {message.sender_id, message.receiver_id} == pair)


def messages_for_user(messages: EntityStore[Message], user_id: int) -> list[Message]:
    return messages.search_by(
        lambda message: user_id in (message.sender_id, message.receiver_id)
    )


__all__ = [
    "clients_for_user",
    "contacts_for_client",
    "deals_for_client",
    "deals_for_user",
    "delete_contacts_for_client",
    "find_user_by_email",
    "messages_between",
    "messages_for_user",
    "search_clients",
    "tasks_assigned_to",
    "tasks_for_client",
]
