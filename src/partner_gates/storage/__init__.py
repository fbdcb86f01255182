"""Blob stores and the template, submission and partner stores built on them."""

from partner_gates.storage.filesystem import FileSystemBlobStore
from partner_gates.storage.memory import InMemoryBlobStore
from partner_gates.storage.partner_store import PartnerStore
from partner_gates.storage.protocol import BlobStore
from partner_gates.storage.submission_store import SubmissionStore, generate_submission_id
from partner_gates.storage.template_store import SaveResult, TemplateVersionStore

__all__ = [
    "BlobStore",
    "FileSystemBlobStore",
    "InMemoryBlobStore",
    "PartnerStore",
    "SaveResult",
    "SubmissionStore",
    "TemplateVersionStore",
    "generate_submission_id",
]
