# VisionHub — Database Models
# Import all models here for SQLAlchemy discovery

from visionhub.models.device import Device         # noqa
from visionhub.models.recording import Recording   # noqa
from visionhub.models.event import Event           # noqa
