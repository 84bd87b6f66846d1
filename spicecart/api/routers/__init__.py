from . import admin
from . import cart
from . import shipping

__all__ = [
    "admin",
    "cart",
    "shipping",
]
