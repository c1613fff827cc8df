"""pkgfront — front-door HTTP pipeline for a package CDN."""

__version__ = "1.0.0"
