from .attributes import AttributeSet, AttributeValue, attribute_hash
from .diff import Add, Delete, Replace, compute_attribute_deltas, compute_deltas
from .exceptions import (
    EntryNotFound,
    InvalidSearchDepth,
    MultipleEntriesReturned,
    ReconcilerError,
)
from .managers import DirectoryClient
from .policy import FilterPolicy
from .reconcilers import (
    ObjectAttributesReconciler,
    ObjectLookup,
    ObjectReconciler,
    ReadResult,
)

__all__ = [
    "Add",
    "AttributeSet",
    "AttributeValue",
    "Delete",
    "DirectoryClient",
    "EntryNotFound",
    "FilterPolicy",
    "InvalidSearchDepth",
    "MultipleEntriesReturned",
    "ObjectAttributesReconciler",
    "ObjectLookup",
    "ObjectReconciler",
    "ReadResult",
    "ReconcilerError",
    "Replace",
    "attribute_hash",
    "compute_attribute_deltas",
    "compute_deltas",
]
