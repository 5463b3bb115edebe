"""JSON exchange format for descriptor trees."""

from .schema import DocumentPayload
from .translator import (
    DescriptorFormatError,
    dump_document,
    from_file,
    from_rules,
    parse_document,
    read_document,
    to_file,
    to_rules,
    write_document,
)

__all__ = [
    "DescriptorFormatError",
    "DocumentPayload",
    "dump_document",
    "from_file",
    "from_rules",
    "parse_document",
    "read_document",
    "to_file",
    "to_rules",
    "write_document",
]
