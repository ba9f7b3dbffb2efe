# CUI // SP-CTI
"""shipline: version-bump, image publish and deploy pipeline for Maven projects."""

__version__ = "0.1.0"
