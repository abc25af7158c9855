"""File storage for attachments and the asset library."""

from .bucket import StorageBucket, attachment_path, format_size, library_path, sanitize_file_name
from .files import delete_asset, delete_attachment, upload_asset, upload_attachment

__all__ = [
    "StorageBucket",
    "attachment_path",
    "delete_asset",
    "delete_attachment",
    "format_size",
    "library_path",
    "sanitize_file_name",
    "upload_asset",
    "upload_attachment",
]
