"""Per-domain progress pointer and the candidate's pipeline status."""

from __future__ import annotations

import structlog

from ..catalog import DomainCatalog
from ..errors import NotFoundError, RequestValidationError
from ..schemas import Candidate, DomainProgress, DomainStatus, PipelineStatus, WorkDomainSelection
from ..schemas.candidate import utcnow
from ..store import DocumentStore
from .status import PipelineEvent, domain_event, transition


class ProgressTracker:
    """Owns DomainProgress entries and the status changes they imply."""

    def __init__(self, *, store: DocumentStore, catalog: DomainCatalog) -> None:
        self._store = store
        self._catalog = catalog
        self._logger = structlog.get_logger(__name__)

    def register(
        self,
        candidate_id: str,
        *,
        email: str,
        domain_id: str,
        domain_name: str,
        name: str | None = None,
    ) -> Candidate:
        """Create the candidate on first profile submission.

        A repeated submission that names another domain behaves like
        :meth:`switch_domain`; otherwise the existing document is returned.
        """
        existing = self._store.find_candidate(candidate_id)
        if existing is not None:
            if existing.work_domain is None or existing.work_domain.domain_id != domain_id:
                return self.switch_domain(candidate_id, domain_id, domain_name)
            return existing

        rounds = self._catalog.get_ordered_rounds(domain_id)
        candidate = Candidate(
            candidate_id=candidate_id,
            name=name,
            email=email,
            work_domain=WorkDomainSelection(domain_id=domain_id, name=domain_name),
            work_domain_selected_at=utcnow(),
            progress=[
                DomainProgress(
                    domain_id=domain_id,
                    domain_name=domain_name,
                    current_round_name=rounds[0].name if rounds else "Registered",
                )
            ],
        )
        self._store.create_candidate(candidate)
        self._logger.info("progress.registered", candidate_id=candidate_id, domain_id=domain_id)
        return candidate

    def advance(self, candidate_id: str, new_round_index: int, new_round_name: str) -> Candidate:
        if new_round_index < 0:
            raise RequestValidationError("Round index must be zero or positive", round_index=new_round_index)

        candidate = self._store.get_candidate(candidate_id)
        if candidate.work_domain is None:
            raise RequestValidationError("Candidate has no active work domain set", candidate_id=candidate_id)
        progress = candidate.active_progress()
        if progress is None:
            raise NotFoundError(
                "Progress for the active domain not found",
                candidate_id=candidate_id,
                domain_id=candidate.work_domain.domain_id,
            )

        progress.current_round_index = new_round_index
        progress.current_round_name = new_round_name
        self._apply_domain_state(candidate, progress)
        self._store.save_candidate(candidate)

        self._logger.info(
            "progress.advanced",
            candidate_id=candidate_id,
            domain_id=progress.domain_id,
            round_index=new_round_index,
            domain_status=progress.status.value,
            status=candidate.status.value,
        )
        return candidate

    def switch_domain(self, candidate_id: str, domain_id: str, domain_name: str) -> Candidate:
        candidate = self._store.get_candidate(candidate_id)
        previous = candidate.active_progress()
        # abandons the previous domain and any in-progress entry an older writer left behind
        for entry in candidate.progress:
            if entry.domain_id != domain_id and entry.status == DomainStatus.IN_PROGRESS:
                entry.status = DomainStatus.ABANDONED

        target = candidate.progress_for(domain_id)
        if target is None:
            target = DomainProgress(domain_id=domain_id, domain_name=domain_name)
            candidate.progress.append(target)
        target.status = DomainStatus.IN_PROGRESS
        target.domain_name = domain_name

        candidate.work_domain = WorkDomainSelection(domain_id=domain_id, name=domain_name)
        candidate.work_domain_selected_at = utcnow()
        self._apply_domain_state(candidate, target)
        self._store.save_candidate(candidate)

        self._logger.info(
            "progress.domain_switched",
            candidate_id=candidate_id,
            previous_domain_id=previous.domain_id if previous else None,
            domain_id=domain_id,
            status=candidate.status.value,
        )
        return candidate

    def record_cleared_round(self, candidate_id: str, domain_id: str, round_id: str) -> bool:
        """Add ``round_id`` to the domain's cleared set; False when nothing changed."""
        candidate = self._store.get_candidate(candidate_id)
        progress = candidate.progress_for(domain_id)
        if progress is None:
            self._logger.warning("progress.cleared_round_without_progress", candidate_id=candidate_id, domain_id=domain_id)
            return False
        if not progress.clear_round(round_id):
            return False
        self._store.save_candidate(candidate)
        self._logger.info("progress.round_cleared", candidate_id=candidate_id, domain_id=domain_id, round_id=round_id)
        return True

    def derive_status(self, candidate: Candidate) -> PipelineStatus:
        """Status implied by the active domain alone, ignoring assignments."""
        progress = candidate.active_progress()
        if progress is None:
            return PipelineStatus.IN_PROGRESS
        _, event = domain_event(progress.current_round_index, self._total_rounds(progress.domain_id))
        if event == PipelineEvent.DOMAIN_COMPLETED:
            return PipelineStatus.WAITING_FOR_ASSIGNMENT
        return PipelineStatus.IN_PROGRESS

    def _apply_domain_state(self, candidate: Candidate, progress: DomainProgress) -> None:
        domain_status, event = domain_event(progress.current_round_index, self._total_rounds(progress.domain_id))
        candidate.status = transition(candidate.status, event)
        progress.status = domain_status

    def _total_rounds(self, domain_id: str) -> int:
        return len(self._catalog.get_ordered_rounds(domain_id))
