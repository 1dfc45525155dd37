"""Interfaces to the systems the gateway consumes but does not own.

``IdentityResolver`` maps a canonical sender id to a registered identity and
``ItemLister`` returns the ordered options available to that identity. Both
are injected into the orchestrator at construction time.

``NullItemLister`` is the default lister: it reports no items, so a data
request replies with the "nothing yet" message. ``DirectoryFile`` serves both
roles from a JSON file for small deployments and local runs.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError

from src.config import ConfigError
from src.gateway.normalizer import InvalidIdentifierError, normalize_sender_id
from src.models import Identity, Option

logger = logging.getLogger(__name__)


class IdentityResolver(Protocol):
    def resolve(self, sender_id: str) -> Identity | None: ...


class ItemLister(Protocol):
    def list_items(self, identity: Identity) -> list[Option]: ...


class NullItemLister:
    """Lister used when no item source is configured."""

    def list_items(self, identity: Identity) -> list[Option]:
        return []


class _DirectoryDocument(BaseModel):
    identities: list[Identity]
    items: dict[str, list[Option]] = {}


class DirectoryFile:
    """Identity directory and item lister loaded from one JSON document.

    Format::

        {
          "identities": [{"id": "...", "display_name": "...", "role": "...",
                          "contact_handle": "01711112222"}],
          "items": {"<identity id>": [{"display_label": "Orders",
                                        "access_uri": "https://..."}]}
        }

    Contact handles are normalized on load so any accepted number format works.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._by_handle: dict[str, Identity] = {}
        self._items: dict[str, list[Option]] = {}
        self._load()

    def _load(self) -> None:
        file = Path(self._path)
        if not file.exists():
            raise ConfigError(f"Directory file not found: {self._path}")
        try:
            document = _DirectoryDocument.model_validate(json.loads(file.read_text()))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid directory file {self._path}: {e}") from e

        for identity in document.identities:
            try:
                handle = normalize_sender_id(identity.contact_handle)
            except InvalidIdentifierError:
                logger.warning(
                    "Skipping identity %s with invalid contact handle %r",
                    identity.id, identity.contact_handle,
                )
                continue
            self._by_handle[handle] = identity.model_copy(
                update={"contact_handle": handle},
            )
        self._items = document.items

    def resolve(self, sender_id: str) -> Identity | None:
        return self._by_handle.get(sender_id)

    def list_items(self, identity: Identity) -> list[Option]:
        return list(self._items.get(identity.id, []))
