from .distances import DistanceStore, Edge
from .hashes import MAX_PICTURE_ID, HashStore, to_signed, to_unsigned

__all__ = [
    "DistanceStore",
    "Edge",
    "HashStore",
    "MAX_PICTURE_ID",
    "to_signed",
    "to_unsigned",
]
