from enum import Enum


class ResourceType(str, Enum):
    PROJECT = "project"
    TASK = "task"
    COMMENT = "comment"

    @property
    def collection(self) -> str:
        """Plural name used for tables, routes and snapshot messages."""
        return f"{self.value}s"

    @classmethod
    def from_collection(cls, name: str) -> "ResourceType":
        for resource in cls:
            if resource.collection == name:
                return resource
        raise ValueError(f"Unknown resource collection '{name}'")

    @classmethod
    def parse(cls, name: str) -> "ResourceType":
        """Accept either the singular or the plural resource name."""
        try:
            return cls(name)
        except ValueError:
            return cls.from_collection(name)
