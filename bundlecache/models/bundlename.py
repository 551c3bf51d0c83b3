"""
Model: BundleName
"""

from bundlecache.db import db


class BundleName(db.Model):
    __tablename__ = "bundle_names"

    bundle_id = db.Column(
        db.Integer, db.ForeignKey("bundles.bundle_id", ondelete="CASCADE"), primary_key=True, autoincrement=False
    )
    name = db.Column(db.String(512), nullable=False)
