"""Domain event payload schemas, validated at the broker boundary.

Snapshots only require the fields the index cannot do without (id and
tenant); every other field passes through to the document mapper, which
coerces what it finds. Producers send snake_case entity snapshots and
camelCase envelope keys.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class EntitySnapshot(BaseModel):
    """Entity snapshot with required identity; unknown fields are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., min_length=1)
    tenant_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("tenant_id", "tenantId")
    )

    def as_snapshot(self) -> dict[str, Any]:
        return self.model_dump()


class _Envelope(BaseModel):
    """Fields every payload may carry. timestamp is when the change happened."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    timestamp: Any = Field(
        default=None, validation_alias=AliasChoices("timestamp", "occurredAt", "occurred_at")
    )


class WorkItemUpsertPayload(_Envelope):
    work_item: EntitySnapshot = Field(
        ..., validation_alias=AliasChoices("workItem", "work_item")
    )


class WorkItemDeletedPayload(_Envelope):
    work_item_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("workItemId", "work_item_id")
    )


class WorkItemStatusChangedPayload(_Envelope):
    work_item_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("workItemId", "work_item_id")
    )
    new_status: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("newStatus", "new_status")
    )


class UserUpsertPayload(_Envelope):
    user: EntitySnapshot


class UserDeletedPayload(_Envelope):
    user_id: str = Field(..., min_length=1, validation_alias=AliasChoices("userId", "user_id"))


class TemplateUpsertPayload(_Envelope):
    template: EntitySnapshot


class TemplateDeletedPayload(_Envelope):
    template_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("templateId", "template_id")
    )


class ReindexPayload(_Envelope):
    tenant_id: str | None = Field(
        default=None, validation_alias=AliasChoices("tenantId", "tenant_id")
    )
    type: str | None = None
