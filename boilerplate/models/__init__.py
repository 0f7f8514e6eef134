# boilerplate/models/__init__.py
from .guest import Guest

# Export all models
__all__ = [
    "Guest",
]
