# scriptgrader/db/init_db.py
from scriptgrader.db.session import engine
from scriptgrader.db.base import Base
from scriptgrader import models  # noqa


def init_db():
    Base.metadata.create_all(bind=engine)
