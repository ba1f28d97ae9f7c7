"""
Contract rendering for newly registered clients.

Templates are plain text with ``{key}`` placeholders. Unknown placeholders are
left as written so that a partially filled template is still readable.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Final

from filecrm.constants import FILE_ENCODING
from filecrm.domain.errors import StorageFault
from filecrm.utils.fs import atomic_write

if TYPE_CHECKING:
    from collections.abc import Mapping

    from filecrm.domain.models import Client
    from filecrm.utils.fs import PathLike

_PLACEHOLDER_PATTERN: Final[re.Pattern[str]] = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

SALES_CONTRACT_TEMPLATE: Final[str] = """\
=== Sales contract ===
Contract no.: {client_id}
Client: {name}
Email: {email}
Phone: {phone}
Address: {address}

Terms:
1. Payment within 30 days.
2. Delivery within 5 business days.

Signature: _______________
"""


def contract_placeholders(client: Client) -> dict[str, str]:
    return {
        "client_id": str(client.id),
        "name": client.name,
        "email": client.email,
        "phone": client.phone,
        "address": client.address,
    }


class DocumentRenderer:
    """Fill a text template and write the result atomically."""

    def __init__(self, template_path: PathLike | None = None) -> None:
        self._template_path = Path(template_path) if template_path else None
        self._template: str | None = None

    @property
    def template(self) -> str:
        if self._template is None:
            if self._template_path is None:
                self._template = SALES_CONTRACT_TEMPLATE
            else:
                try:
                    self._template = self._template_path.read_text(encoding=FILE_ENCODING)
                except OSError as exc:
                    raise StorageFault("read_template", self._template_path, exc) from exc
        return self._template

    def render(self, placeholders: Mapping[str, object]) -> str:
        def _substitute(match: re.Match[str]) -> str:
            key = match.group(1)
            if key not in placeholders:
                return match.group(0)
            return str(placeholders[key])

        return _PLACEHOLDER_PATTERN.sub(_substitute, self.template)

    def save(self, text: str, output_path: PathLike) -> Path:
        target = Path(output_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            atomic_write(target, text)
        except OSError as exc:
            raise StorageFault("write_document", target, exc) from exc
        return target


__all__ = ["SALES_CONTRACT_TEMPLATE", "DocumentRenderer", "contract_placeholders"]
