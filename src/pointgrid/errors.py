from __future__ import annotations


class PointGridError(Exception):
    pass


class SchemaError(PointGridError, ValueError):
    pass


class DuplicateFieldError(SchemaError):
    pass


class FieldNotFoundError(SchemaError, KeyError):
    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class TypeMismatchError(SchemaError, TypeError):
    pass


class BoundsError(PointGridError, IndexError):
    pass


class IndexOutOfRangeError(BoundsError):
    pass


class FitFailure(PointGridError, RuntimeError):
    pass


class CloudHeaderError(PointGridError, ValueError):
    pass
