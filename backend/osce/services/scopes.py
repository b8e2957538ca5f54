"""Station scope assignment for grader accounts."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from identity_access.errors import InvalidInput
from identity_access.lookup import lookup_scope

from osce.store import OsceStoreProtocol

logger = logging.getLogger("osce.scopes")

MSG_USER_ID_REQUIRED = "Thiếu user_id"
MSG_SET_REQUIRED = "Thiếu user_id hoặc station_id hoặc chain_id"


@dataclass
class ScopesService:
    store: OsceStoreProtocol

    def assign(self, user_id: Any, station_id: Any, chain_id: Any) -> None:
        """Point the user's single scope row at `(station_id, chain_id)`.

        Lookup, then update or insert. Two concurrent first assignments for the
        same user can both see "absent"; the store's primary key on `user_id`
        rejects the second insert, which surfaces as a dependency error.
        """
        if not user_id or not station_id or not chain_id:
            raise InvalidInput(MSG_SET_REQUIRED)
        uid = str(user_id)
        if self.store.get_scope(uid) is not None:
            self.store.update_scope(uid, {"station_id": station_id, "chain_id": chain_id})
        else:
            self.store.insert_scope({"user_id": uid, "station_id": station_id, "chain_id": chain_id})
        logger.info("Station scope assigned user_id=%s station_id=%s", uid, station_id)

    def get(self, user_id: Any) -> Optional[Dict[str, Any]]:
        if not user_id:
            raise InvalidInput(MSG_USER_ID_REQUIRED)
        scope = lookup_scope(self.store, str(user_id))
        return scope.as_dict() if scope else None

    def clear(self, user_id: Any) -> None:
        if not user_id:
            raise InvalidInput(MSG_USER_ID_REQUIRED)
        self.store.delete_scope(str(user_id))
        logger.info("Station scope cleared user_id=%s", user_id)


__all__ = ["ScopesService"]
