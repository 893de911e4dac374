from __future__ import annotations


class FieldNotFound(KeyError):
    def __init__(self, field_id: str) -> None:
        super().__init__(field_id)
        self.field_id = field_id

    def __str__(self) -> str:
        return f"Field not found: {self.field_id}"


class ShapeError(ValueError):
    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        messages = [message for items in errors.values() for message in items]
        super().__init__("; ".join(messages) or "Invalid field configuration")


class MissingFields(ValueError):
    def __init__(self, labels: list[str]) -> None:
        self.labels = labels
        super().__init__(f"Please fill in required fields: {', '.join(labels)}")


class FormNotSavable(ValueError):
    pass
