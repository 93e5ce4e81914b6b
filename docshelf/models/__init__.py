"""Import all models so SQLModel.metadata picks them up."""

from docshelf.models.assignment import (
    Assignment,
    AssignmentOverview,
    AssignmentRead,
    PinVersionRequest,
)
from docshelf.models.chunk import Chunk, ChunkRead
from docshelf.models.context import (
    ContextBundleRead,
    ContextRequest,
    ContextUsageRead,
    DocumentContextItem,
    DocumentUsageRead,
)
from docshelf.models.document import (
    BulkMetadataUpdate,
    Document,
    DocumentDetail,
    DocumentMetadataUpdate,
    DocumentRead,
    DocType,
    ParseStatus,
)
from docshelf.models.version import DocumentVersion, VersionOrigin, VersionRead
from docshelf.models.workspace import (
    AssignmentSnapshot,
    ChunkSnapshot,
    DocumentSnapshot,
    ImportSummary,
    VersionSnapshot,
    WorkspaceSnapshot,
)

__all__ = [
    "Assignment",
    "AssignmentOverview",
    "AssignmentRead",
    "AssignmentSnapshot",
    "BulkMetadataUpdate",
    "Chunk",
    "ChunkRead",
    "ChunkSnapshot",
    "ContextBundleRead",
    "ContextRequest",
    "ContextUsageRead",
    "DocType",
    "Document",
    "DocumentContextItem",
    "DocumentDetail",
    "DocumentMetadataUpdate",
    "DocumentRead",
    "DocumentSnapshot",
    "DocumentUsageRead",
    "DocumentVersion",
    "ImportSummary",
    "ParseStatus",
    "PinVersionRequest",
    "VersionOrigin",
    "VersionRead",
    "VersionSnapshot",
    "WorkspaceSnapshot",
]
