# SmartenGo database models
# Import all models here for SQLAlchemy discovery

from app.models.toilet import Toilet              # noqa
from app.models.payment import Payment            # noqa
from app.models.access_log import AccessLog       # noqa
