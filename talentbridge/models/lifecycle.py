from enum import Enum
from typing import Dict, FrozenSet, Tuple


class Role(str, Enum):
    CANDIDATE = "candidate"
    COMPANY = "company"
    RECRUITER = "recruiter"
    SPECIALIST = "specialist"
    ADMIN = "admin"


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    INJECTED_BY_ADMIN = "injected_by_admin"
    REVIEWING = "reviewing"
    SENT_TO_SPECIALIST = "sent_to_specialist"
    EVALUATING = "evaluating"
    SENT_TO_COMPANY = "sent_to_company"
    INTERVIEWED = "interviewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DISCARDED = "discarded"


TERMINAL_STATUSES = frozenset({
    ApplicationStatus.ACCEPTED,
    ApplicationStatus.REJECTED,
    ApplicationStatus.DISCARDED,
})

# Position in the hand-off pipeline; used to tell "already forwarded" apart
# from "not ready yet".
STAGE_ORDER: Dict[ApplicationStatus, int] = {
    ApplicationStatus.PENDING: 0,
    ApplicationStatus.INJECTED_BY_ADMIN: 0,
    ApplicationStatus.REVIEWING: 1,
    ApplicationStatus.SENT_TO_SPECIALIST: 2,
    ApplicationStatus.EVALUATING: 3,
    ApplicationStatus.SENT_TO_COMPANY: 4,
    ApplicationStatus.INTERVIEWED: 5,
    ApplicationStatus.ACCEPTED: 6,
    ApplicationStatus.REJECTED: 6,
}

# Statuses a company may see for its own jobs
COMPANY_VISIBLE_STATUSES = frozenset({
    ApplicationStatus.SENT_TO_COMPANY,
    ApplicationStatus.INTERVIEWED,
    ApplicationStatus.ACCEPTED,
    ApplicationStatus.REJECTED,
})

# Statuses a specialist works with on a released assignment
SPECIALIST_VISIBLE_STATUSES = frozenset({
    ApplicationStatus.SENT_TO_SPECIALIST,
    ApplicationStatus.EVALUATING,
    ApplicationStatus.SENT_TO_COMPANY,
    ApplicationStatus.DISCARDED,
})

A = ApplicationStatus

# Plain status moves per role (forwards are handled separately)
STATUS_MOVES: Dict[Role, Dict[ApplicationStatus, FrozenSet[ApplicationStatus]]] = {
    Role.RECRUITER: {
        A.PENDING: frozenset({A.REVIEWING, A.DISCARDED}),
        A.INJECTED_BY_ADMIN: frozenset({A.REVIEWING, A.DISCARDED}),
        A.REVIEWING: frozenset({A.DISCARDED}),
    },
    Role.SPECIALIST: {
        A.SENT_TO_SPECIALIST: frozenset({A.EVALUATING, A.DISCARDED}),
        A.EVALUATING: frozenset({A.DISCARDED}),
    },
    Role.COMPANY: {
        A.SENT_TO_COMPANY: frozenset({A.INTERVIEWED, A.ACCEPTED, A.REJECTED}),
        A.INTERVIEWED: frozenset({A.ACCEPTED, A.REJECTED}),
    },
}

# Forward target -> (role that forwards, statuses it may forward from)
FORWARDS: Dict[ApplicationStatus, Tuple[Role, FrozenSet[ApplicationStatus]]] = {
    A.SENT_TO_SPECIALIST: (
        Role.RECRUITER,
        frozenset({A.PENDING, A.INJECTED_BY_ADMIN, A.REVIEWING}),
    ),
    A.SENT_TO_COMPANY: (
        Role.SPECIALIST,
        frozenset({A.SENT_TO_SPECIALIST, A.EVALUATING}),
    ),
}


def allowed_moves(role: Role, current: ApplicationStatus) -> FrozenSet[ApplicationStatus]:
    if current in TERMINAL_STATUSES:
        return frozenset()
    if role == Role.ADMIN:
        merged = set()
        for moves in STATUS_MOVES.values():
            merged |= moves.get(current, frozenset())
        return frozenset(merged)
    return STATUS_MOVES.get(role, {}).get(current, frozenset())


class RecruiterStatus(str, Enum):
    NOT_SENT = "not_sent"
    SENT_TO_SPECIALIST = "sent_to_specialist"


class SpecialistStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AssignmentState(str, Enum):
    """Single persisted state for a JobAssignment.

    Only the legal (recruiter_status, specialist_status) pairs exist, so a
    specialist can never be working on a job the recruiter has not released.
    """

    NOT_SENT = "not_sent"
    AWAITING_SPECIALIST = "awaiting_specialist"
    SPECIALIST_WORKING = "specialist_working"
    SPECIALIST_DONE = "specialist_done"

    @property
    def recruiter_status(self) -> RecruiterStatus:
        if self is AssignmentState.NOT_SENT:
            return RecruiterStatus.NOT_SENT
        return RecruiterStatus.SENT_TO_SPECIALIST

    @property
    def specialist_status(self) -> SpecialistStatus:
        return _SPECIALIST_STATUS[self]

    @property
    def released(self) -> bool:
        return self.recruiter_status is RecruiterStatus.SENT_TO_SPECIALIST

    @classmethod
    def for_specialist_status(cls, status: SpecialistStatus) -> "AssignmentState":
        for state, specialist_status in _SPECIALIST_STATUS.items():
            if state.released and specialist_status is status:
                return state
        raise ValueError(status)


_SPECIALIST_STATUS = {
    AssignmentState.NOT_SENT: SpecialistStatus.PENDING,
    AssignmentState.AWAITING_SPECIALIST: SpecialistStatus.PENDING,
    AssignmentState.SPECIALIST_WORKING: SpecialistStatus.IN_PROGRESS,
    AssignmentState.SPECIALIST_DONE: SpecialistStatus.COMPLETED,
}

RELEASED_STATES = frozenset(state for state in AssignmentState if state.released)

SPECIALIST_MOVES: Dict[SpecialistStatus, FrozenSet[SpecialistStatus]] = {
    SpecialistStatus.PENDING: frozenset({SpecialistStatus.IN_PROGRESS, SpecialistStatus.COMPLETED}),
    SpecialistStatus.IN_PROGRESS: frozenset({SpecialistStatus.COMPLETED}),
    SpecialistStatus.COMPLETED: frozenset(),
}


class NotificationKind(str, Enum):
    NEW_APPLICATION = "new_application"
    ASSIGNMENT = "assignment"
    SENT_TO_SPECIALIST = "sent_to_specialist"
    SENT_TO_COMPANY = "sent_to_company"
    APPLICATION_STATUS = "application_status"
    ASSIGNMENT_STATUS = "assignment_status"
