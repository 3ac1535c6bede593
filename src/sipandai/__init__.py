"""SIPANDAI - Google Drive storage client for employee submission documents.

This package provides the Google Drive integration used by the submission
workflow: initialization of the Google API client, OAuth sign-in, folder
provisioning, and document upload.
"""

__version__ = "0.1.0"
__author__ = "SIPANDAI Team"

__all__ = [
    "__version__",
    "__author__",
]
