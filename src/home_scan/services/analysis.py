"""Batch analysis lifecycle across a session's images."""

import asyncio
import logging
from dataclasses import dataclass, field

from home_scan.domain.errors import (
    AnalysisInProgressError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationFailedError,
)
from home_scan.domain.sessions import AnalysisStatus, Image, Session
from home_scan.services.assessment import (
    AssessmentOutcome,
    ImageInput,
    LanguageModelAssessor,
    RiskAssessor,
)
from home_scan.services.images import SESSION_NOT_FOUND, ImageStorage
from home_scan.services.session_store import SessionStore

_logger = logging.getLogger(__name__)

_RETRYABLE = (AnalysisStatus.ERROR, AnalysisStatus.SKIPPED)


@dataclass
class AnalysisRun:
    """What happened to each image during one analysis batch."""

    session: Session
    analyzed_image_ids: list[str] = field(default_factory=list)
    load_failed_image_ids: list[str] = field(default_factory=list)
    assessment_failed_image_ids: list[str] = field(default_factory=list)
    skipped_image_ids: list[str] = field(default_factory=list)
    findings_produced: bool = False


@dataclass
class AnalysisCoordinator:
    """Drives pending images through analyzing to complete or error."""

    store: SessionStore
    storage: ImageStorage
    assessor: RiskAssessor | None
    image_analyzer: LanguageModelAssessor | None = None
    max_images_per_assessment: int = 10
    load_concurrency: int = 5
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, repr=False)

    async def analyze(self, session_id: str) -> AnalysisRun:
        """Analyze every pending image of a session as one batch."""
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)
        if not session.images:
            raise ValidationFailedError("No images to analyze")
        if self.assessor is None:
            raise ServiceUnavailableError(
                "AI analysis service not configured. "
                "Please check server configuration."
            )
        if self._is_running(session_id):
            raise AnalysisInProgressError(
                "Analysis already in progress for this session"
            )
        if not _with_status(session.images, AnalysisStatus.PENDING):
            retryable = [
                image.id
                for image in session.images
                if image.analysis_status in _RETRYABLE
            ]
            detail = ""
            if retryable:
                detail = f"; retry failed images: {', '.join(retryable)}"
            raise ValidationFailedError(f"No pending images to analyze{detail}")

        lock = self._locks.setdefault(session_id, asyncio.Lock())
        try:
            async with lock:
                return await self._run_batch(session_id, session)
        finally:
            if not lock.locked() and self._locks.get(session_id) is lock:
                del self._locks[session_id]

    async def retry_failed(self, session_id: str) -> AnalysisRun:
        """Reset failed and skipped images to pending, then analyze again.

        Images that already completed are never resent.
        """
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)
        if self._is_running(session_id):
            raise AnalysisInProgressError(
                "Analysis already in progress for this session"
            )
        retryable = [
            image for image in session.images if image.analysis_status in _RETRYABLE
        ]
        if not retryable and not _with_status(session.images, AnalysisStatus.PENDING):
            raise ValidationFailedError("No failed images to retry")
        for image in retryable:
            self.store.update_image(
                session_id, image.id, {"analysis_status": AnalysisStatus.PENDING}
            )
        _logger.info(
            "Retrying analysis: session_id=%s reset_images=%s",
            session_id,
            [image.id for image in retryable],
        )
        return await self.analyze(session_id)

    async def analyze_image(self, session_id: str, image_id: str) -> Image:
        """Run a single-image language model analysis and store it on the image."""
        if self.image_analyzer is None:
            raise ServiceUnavailableError("Language model analysis not configured")
        image = self.store.get_image(session_id, image_id)
        if image is None:
            if self.store.get(session_id) is None:
                raise NotFoundError(SESSION_NOT_FOUND)
            raise NotFoundError("Image not found")
        data = await self._load_buffer(image)
        if data is None:
            raise NotFoundError("Image file not found")

        result = await self.image_analyzer.analyze_image(data)
        updated = self.store.update_image(
            session_id, image_id, {"llm_analysis": result}
        )
        stored = updated.find_image(image_id) if updated else None
        if stored is None:
            raise NotFoundError("Image not found")
        return stored

    async def _run_batch(self, session_id: str, session: Session) -> AnalysisRun:
        pending = _with_status(session.images, AnalysisStatus.PENDING)
        _logger.info(
            "Starting analysis: session_id=%s pending_images=%s",
            session_id,
            len(pending),
        )
        self.store.update(session_id, {"analysis_status": AnalysisStatus.ANALYZING})
        self._set_status(session_id, pending, AnalysisStatus.ANALYZING)

        run = AnalysisRun(session=session)
        loaded: list[tuple[Image, bytes]] = []
        for image, data in await self._load_buffers(pending):
            if data is None:
                run.load_failed_image_ids.append(image.id)
                self._set_status(session_id, [image], AnalysisStatus.ERROR)
            else:
                loaded.append((image, data))

        if not loaded:
            _logger.error(
                "No image buffers loaded, analysis aborted: session_id=%s", session_id
            )
            return self._finish(session_id, run, outcome=None)

        batch = loaded[: self.max_images_per_assessment]
        overflow = loaded[self.max_images_per_assessment :]
        if overflow:
            _logger.warning(
                "Batch exceeds assessment cap, skipping images: session_id=%s "
                "cap=%s skipped=%s",
                session_id,
                self.max_images_per_assessment,
                len(overflow),
            )

        outcome = await self._assess(session_id, session, batch)
        if outcome is None or not outcome.produced:
            run.assessment_failed_image_ids.extend(image.id for image, _ in loaded)
            self._set_status(
                session_id, [image for image, _ in loaded], AnalysisStatus.ERROR
            )
            return self._finish(session_id, run, outcome=None)

        for image, _ in batch:
            if image.id in outcome.failed_image_ids:
                run.assessment_failed_image_ids.append(image.id)
                self._set_status(session_id, [image], AnalysisStatus.ERROR)
                continue
            changes: dict[str, object] = {"analysis_status": AnalysisStatus.COMPLETE}
            analysis = outcome.analyses.get(image.id)
            if analysis is not None:
                changes["analysis"] = analysis
            self.store.update_image(session_id, image.id, changes)
            run.analyzed_image_ids.append(image.id)
        self._set_status(
            session_id, [image for image, _ in overflow], AnalysisStatus.SKIPPED
        )
        run.skipped_image_ids.extend(image.id for image, _ in overflow)
        run.findings_produced = True
        return self._finish(session_id, run, outcome=outcome)

    async def _assess(
        self, session_id: str, session: Session, batch: list[tuple[Image, bytes]]
    ) -> AssessmentOutcome | None:
        risk_factor = session.location.risk_factor if session.location else 1.0
        inputs = [ImageInput(image_id=image.id, data=data) for image, data in batch]
        try:
            return await self.assessor.assess(inputs, risk_factor)
        except Exception:
            _logger.exception("Risk assessment failed: session_id=%s", session_id)
            return None

    async def _load_buffers(
        self, images: list[Image]
    ) -> list[tuple[Image, bytes | None]]:
        """Load buffers concurrently in fixed-size groups, keeping order."""
        results: list[tuple[Image, bytes | None]] = []
        step = max(1, self.load_concurrency)
        for start in range(0, len(images), step):
            group = images[start : start + step]
            buffers = await asyncio.gather(
                *(self._load_buffer(image) for image in group)
            )
            results.extend(zip(group, buffers, strict=True))
        return results

    async def _load_buffer(self, image: Image) -> bytes | None:
        try:
            data = await self.storage.load(image.storage_path)
        except Exception:
            _logger.exception(
                "Failed to load image buffer", extra={"image_id": image.id}
            )
            return None
        if not data:
            _logger.warning("Image buffer missing: image_id=%s", image.id)
            return None
        return data

    def _is_running(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    def _set_status(
        self, session_id: str, images: list[Image], status: AnalysisStatus
    ) -> None:
        for image in images:
            self.store.update_image(session_id, image.id, {"analysis_status": status})

    def _finish(
        self,
        session_id: str,
        run: AnalysisRun,
        outcome: AssessmentOutcome | None,
    ) -> AnalysisRun:
        status = AnalysisStatus.ERROR
        report = None
        if outcome is not None:
            status = AnalysisStatus.COMPLETE
            report = outcome.report
        updated = self.store.update(
            session_id, {"analysis_status": status, "security_report": report}
        )
        if updated is not None:
            run.session = updated
        _logger.info(
            "Analysis finished: session_id=%s status=%s analyzed=%s failed=%s "
            "skipped=%s",
            session_id,
            status.value,
            len(run.analyzed_image_ids),
            len(run.load_failed_image_ids) + len(run.assessment_failed_image_ids),
            len(run.skipped_image_ids),
        )
        return run


def _with_status(images: list[Image], status: AnalysisStatus) -> list[Image]:
    return [image for image in images if image.analysis_status == status]
