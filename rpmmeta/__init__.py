"""
rpmmeta - Build metadata resolver for RPM spec files

Turns a package spec into verifiable build metadata:
- Macro-aware spec expansion through rpmspec
- BuildRequires/Requires/Provides extraction
- Remote source discovery with hash-verified manifests
"""

__version__ = "0.1.0"
__author__ = "rpmmeta contributors"
