"""
Repositories package

Each repository wraps the queries for one aggregate and works on the
SQLAlchemy session it is given:
- bundles_repository.py

Usage:
    from bundlecache.repositories.bundles_repository import BundlesRepository
    rows = BundlesRepository(db.session).get_rows([1, 2], FilterSpec.all())
"""
