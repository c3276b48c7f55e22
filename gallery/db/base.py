# gallery/db/base.py
from sqlalchemy.orm import declarative_base

Base = declarative_base()

def load_all_models():
    # Import models ONLY for side-effect registration
    import gallery.db.models.tenant  # noqa
    import gallery.db.models.settings  # noqa
