"""
Documents module.

Files are written to the configured file storage (local dir or S3); the
``documents`` row keeps the storage key in ``file_data``. Rows imported from
the old browser app may still hold base64 data URLs, which download as-is.
"""
