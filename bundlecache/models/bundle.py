"""
Model: Bundle
"""

from bundlecache.db import db


class Bundle(db.Model):
    __tablename__ = "bundles"

    bundle_id = db.Column(db.Integer, primary_key=True, autoincrement=False)  # Steam bundle id
    removed = db.Column(db.Boolean, nullable=False, default=False)
    last_update = db.Column(db.BigInteger, nullable=False, default=0)  # Epoch seconds of the last refresh
    queued_for_update = db.Column(db.Boolean, nullable=False, default=False)

    name_entry = db.relationship(
        "BundleName", uselist=False, backref="bundle", cascade="all, delete-orphan", passive_deletes=True
    )
    app_entries = db.relationship("BundleApp", backref="bundle", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        # Queue draining scans queued rows oldest first
        db.Index("idx_bundles_queued_last_update", "queued_for_update", "last_update"),
    )

    def __repr__(self):
        return f"<Bundle {self.bundle_id} removed={self.removed} queued={self.queued_for_update}>"
