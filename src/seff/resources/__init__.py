"""Resource definitions."""

from seff.resources.base import (
    Resource,
    ResourcePool,
    ResourceRecord,
    is_uid,
    make_uid,
    parse_uid,
    validate_crn,
    validate_name,
    validate_tag,
    validate_uid,
)
from seff.resources.local import (
    LocalDirectoryResource,
    LocalFileResource,
    LocalManifestResource,
)

__all__ = [
    "LocalDirectoryResource",
    "LocalFileResource",
    "LocalManifestResource",
    "Resource",
    "ResourcePool",
    "ResourceRecord",
    "is_uid",
    "make_uid",
    "parse_uid",
    "validate_crn",
    "validate_name",
    "validate_tag",
    "validate_uid",
]
