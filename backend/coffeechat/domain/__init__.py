"""Engine domain exports."""

from .errors import EngineError  # noqa: F401
from .models import (  # noqa: F401
	AppointmentStatus,
	ProposalStatus,
	ReportStatus,
	SanctionLevel,
)
from .store import InMemoryRecordStore, RecordStore, StoreSession  # noqa: F401
