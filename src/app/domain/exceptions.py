from src.app.domain.events.change_event import ChangeOperation
from src.app.domain.models.resource_type import ResourceType


class ResourceNotFoundError(Exception):
    """Raised when a resource identifier does not exist in the store."""

    def __init__(self, resource: ResourceType, resource_id: int) -> None:
        super().__init__(f"{resource.value.capitalize()} with id '{resource_id}' was not found.")
        self.resource = resource
        self.resource_id = resource_id


class InvalidReferenceError(Exception):
    """Raised when a write points at a parent row that does not exist."""

    def __init__(self, resource: ResourceType, detail: str) -> None:
        super().__init__(f"Invalid reference on {resource.value}: {detail}")
        self.resource = resource
        self.detail = detail


class NotificationDecodeError(ValueError):
    """Raised when a change notification cannot be turned into a ChangeEvent."""


class OversizedNotificationError(NotificationDecodeError):
    """Raised for a change notification that only carries the record id."""

    def __init__(
        self, resource: ResourceType, operation: ChangeOperation, resource_id: int
    ) -> None:
        super().__init__(f"{resource.value}:{operation.value} for id {resource_id} carries no record")
        self.resource = resource
        self.operation = operation
        self.resource_id = resource_id
