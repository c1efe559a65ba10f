#!/usr/bin/env python3
"""
Create tables and seed the default model catalog.
Run from the project root: python -m scripts.init_db
"""
from imagegen.db.base import Base
from imagegen.db.session import SessionLocal, engine
import imagegen.models  # noqa: F401  registers tables
from imagegen.services.catalog.service import CatalogService


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        added = CatalogService(db).seed_default_models()
        print(f"Tables ready, {added} model(s) added to the catalog.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
