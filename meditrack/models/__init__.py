from .staff import metadata, staff

__all__ = [
    "metadata",
    "staff",
]
