from .unit import UnitRecord

__all__ = ["UnitRecord"]
