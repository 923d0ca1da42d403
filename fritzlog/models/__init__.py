# FRITZ!Box log collector: database models
# Import all models here for SQLAlchemy discovery

from fritzlog.models.log import Log, LogCategory    # noqa
from fritzlog.models.update import Update           # noqa
