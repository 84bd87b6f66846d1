# spicecart/domain/enums.py
import enum


class Channel(str, enum.Enum):
    b2c = "b2c"
    b2b = "b2b"


class CartStatus(str, enum.Enum):
    active = "active"
    converted = "converted"
    abandoned = "abandoned"


class RuleScope(str, enum.Enum):
    b2c = "b2c"
    b2b = "b2b"
    all = "all"
