"""
Helm chart repository server.

This package is responsible for:
* Packaging every chart source directory into a versioned .tgz archive.
* Building index.yaml from the archives that ended up on disk.
* Serving the index and the archives over HTTP until shutdown.
"""

__version__ = "0.1.0"
