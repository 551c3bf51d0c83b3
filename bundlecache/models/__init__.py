"""
Models package

One file per table:
- bundle.py (bundles)
- bundlename.py (bundle_names)
- bundleapp.py (bundle_apps)

Child rows are owned by their Bundle and deleted with it.
"""

from .bundle import Bundle
from .bundlename import BundleName
from .bundleapp import BundleApp

__all__ = [
    "Bundle",
    "BundleName",
    "BundleApp",
]
