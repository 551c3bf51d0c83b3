"""
Model: BundleApp
"""

from bundlecache.db import db


class BundleApp(db.Model):
    __tablename__ = "bundle_apps"

    bundle_id = db.Column(
        db.Integer, db.ForeignKey("bundles.bundle_id", ondelete="CASCADE"), primary_key=True, autoincrement=False
    )
    app_id = db.Column(db.Integer, primary_key=True, autoincrement=False)

    __table_args__ = (db.Index("idx_bundle_apps_app", "app_id"),)
