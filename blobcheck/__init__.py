"""
blobcheck - Validate S3-compatible object storage as a CockroachDB backup destination.

This package provides utilities for:
- Discovering the connection parameters a storage provider needs
- Registering the destination as an external connection
- Running a full and incremental backup under concurrent write load
- Restoring the backup and verifying its integrity
- Reporting per-node transfer statistics
"""

__version__ = "0.1.0"
