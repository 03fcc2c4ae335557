"""Store error taxonomy. Every error is a caller logic error: raised synchronously, never retried."""


class StoreError(ValueError):
    pass


class ConstraintViolation(StoreError):
    """Dangling or missing foreign key."""


class SingletonViolation(StoreError):
    """Second insert into, or delete of, a singleton table."""


class InvariantViolation(StoreError):
    """Template/instance exclusivity or another row invariant broken."""


class NotFound(StoreError):
    def __init__(self, entity: str, row_id: int):
        super().__init__(f"{entity} #{row_id} not found")
        self.entity = entity
        self.row_id = row_id


class MalformedRule(StoreError):
    """Recurrence rule text that cannot be parsed."""


class FieldError(StoreError):
    """Unknown column or a column callers may not write (id, timestamps)."""


class UnknownEntity(StoreError):
    pass
