"""Persistence operations handed to the storage collaborator."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class UpdateOp:
    """One keyed update in document-store bulk-write form.

    Attributes:
        filter: Key the update applies to, e.g. {"userId": ..., "smsId": ...}.
        set_fields: Fields written with $set.
        unset_fields: Field names removed with $unset.
        upsert: Whether a missing document should be created.
    """

    filter: dict[str, Any]
    set_fields: dict[str, Any] = field(default_factory=dict)
    unset_fields: tuple[str, ...] = ()
    upsert: bool = False

    @property
    def sms_id(self) -> str | None:
        """The smsId this operation targets, if it is keyed by one."""
        value = self.filter.get("smsId")
        return str(value) if value is not None else None

    def to_bulk_write(self) -> dict[str, Any]:
        """Render as a MongoDB bulkWrite ``updateOne`` entry.

        Returns:
            {"updateOne": {"filter": ..., "update": {...}, "upsert": ...}}
        """
        update: dict[str, Any] = {}
        if self.set_fields:
            update["$set"] = dict(self.set_fields)
        if self.unset_fields:
            update["$unset"] = {name: "" for name in self.unset_fields}

        return {
            "updateOne": {
                "filter": dict(self.filter),
                "update": update,
                "upsert": self.upsert,
            }
        }
