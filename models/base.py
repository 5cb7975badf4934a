from sqlalchemy import BigInteger, Integer, JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# BIGINT keys on PostgreSQL, INTEGER on SQLite so rowid autoincrement applies
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

# JSONB on PostgreSQL, plain JSON elsewhere
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class JobStatus(str, enum.Enum):
    """Job tracker status"""
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    FAILED = "failed"
    PARTIAL = "partial"

    def can_transition_to(self, target: "JobStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    JobStatus.IDLE: {JobStatus.INITIALIZING},
    JobStatus.FAILED: {JobStatus.INITIALIZING},
    JobStatus.PARTIAL: {JobStatus.INITIALIZING},
    # A row left in running/initializing means the previous process died
    JobStatus.RUNNING: {
        JobStatus.INITIALIZING,
        JobStatus.RUNNING,
        JobStatus.IDLE,
        JobStatus.FAILED,
        JobStatus.PARTIAL,
    },
    JobStatus.INITIALIZING: {
        JobStatus.INITIALIZING,
        JobStatus.RUNNING,
        JobStatus.IDLE,
        JobStatus.FAILED,
    },
}


class RecordType(str, enum.Enum):
    """FPDS content document type"""
    AWARD = "award"
    IDV = "IDV"
    OTHER_TRANSACTION_AWARD = "OtherTransactionAward"
    OTHER_TRANSACTION_IDV = "OtherTransactionIDV"

    @classmethod
    def from_element_name(cls, name: str) -> str:
        """
        Map a content root element name to a record type value.

        Unknown document types keep their lower-cased name rather than
        being rejected.
        """
        lowered = name.lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member.value
        return lowered
