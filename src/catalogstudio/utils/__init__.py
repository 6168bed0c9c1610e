from .naming import ai_name, dedupe, export_filename, local_name, remote_name, slugify
from .redact import redact

__all__ = [
    "ai_name",
    "dedupe",
    "export_filename",
    "local_name",
    "redact",
    "remote_name",
    "slugify",
]
