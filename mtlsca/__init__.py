"""Issue a private CA and an mTLS client certificate for one user."""

__version__ = "0.1.0"
