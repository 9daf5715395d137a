"""
Storage module for S3-compatible object storage.

Generated images are downloaded from the provider and re-uploaded here so
the public URL outlives the provider's temporary link.
"""
from cardforge.storage.object_storage import ObjectStorage, download_image, get_object_storage

__all__ = ["ObjectStorage", "download_image", "get_object_storage"]
