"""Log Shipper Service.

This service watches a directory for rotated log files and uploads each new
file to an object-storage backend (Azure Blob, S3, GCS or a local directory).
"""

__version__ = "0.1.0"
