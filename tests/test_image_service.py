"""Tests for the image application service."""

import asyncio
import threading
from dataclasses import dataclass, field

import pytest

from home_scan.domain.errors import NotFoundError, ValidationFailedError
from home_scan.domain.sessions import AnalysisStatus
from home_scan.services.images import ImageService, ProcessedImage
from home_scan.services.session_store import InMemorySessionStore
from tests.conftest import FakeImageProcessor, InMemoryImageStorage


def _upload(service: ImageService, data: bytes = b"photo", **kwargs: object):
    params = {"filename": "front.jpg", "content_type": "image/jpeg", "data": data}
    params.update(kwargs)
    return asyncio.run(service.upload("s1", **params))


def test_upload_stores_processed_files(
    image_service: ImageService,
    store: InMemorySessionStore,
    storage: InMemoryImageStorage,
) -> None:
    store.create("s1")

    result = _upload(image_service)

    image = store.get_image("s1", result.image_id)
    assert image.analysis_status == AnalysisStatus.PENDING
    assert image.original_filename == "front.jpg"
    assert storage.files[f"s1/{result.image_id}.jpg"] == b"jpeg:photo"
    assert storage.files[f"s1/{result.image_id}_thumb.jpg"] == b"thumb:photo"
    assert result.original_url == f"/images/s1/{result.image_id}"
    assert result.thumbnail_url == f"/images/s1/{result.image_id}/thumbnail"


def test_upload_requires_live_session(image_service: ImageService) -> None:
    with pytest.raises(NotFoundError):
        _upload(image_service)


def test_upload_rejects_unsupported_type(
    image_service: ImageService, store: InMemorySessionStore
) -> None:
    store.create("s1")

    with pytest.raises(ValidationFailedError, match="Invalid file type"):
        _upload(image_service, filename="notes.pdf", content_type="application/pdf")


def test_upload_accepts_heic_by_extension(
    image_service: ImageService, store: InMemorySessionStore
) -> None:
    store.create("s1")

    result = _upload(
        image_service, filename="IMG_0001.HEIC", content_type="application/octet-stream"
    )

    assert store.get_image("s1", result.image_id) is not None


@dataclass
class ThreadRecordingProcessor(FakeImageProcessor):
    """Processor that remembers which thread decoded the upload."""

    thread_ids: list[int] = field(default_factory=list)

    def process(self, data: bytes) -> ProcessedImage:
        self.thread_ids.append(threading.get_ident())
        return super().process(data)


def test_upload_processes_off_the_event_loop_thread(
    store: InMemorySessionStore, storage: InMemoryImageStorage
) -> None:
    processor = ThreadRecordingProcessor()
    service = ImageService(store=store, storage=storage, processor=processor)
    store.create("s1")

    _upload(service)

    assert len(processor.thread_ids) == 1
    assert processor.thread_ids[0] != threading.get_ident()


def test_upload_rejects_oversized_file(
    store: InMemorySessionStore, storage: InMemoryImageStorage
) -> None:
    service = ImageService(
        store=store,
        storage=storage,
        processor=FakeImageProcessor(),
        max_image_size_bytes=4,
    )
    store.create("s1")

    with pytest.raises(ValidationFailedError, match="File too large"):
        _upload(service, data=b"12345")


def test_upload_enforces_session_cap(
    store: InMemorySessionStore, storage: InMemoryImageStorage
) -> None:
    service = ImageService(
        store=store,
        storage=storage,
        processor=FakeImageProcessor(),
        max_images_per_session=1,
    )
    store.create("s1")
    _upload(service)

    with pytest.raises(ValidationFailedError, match="Maximum 1 images"):
        _upload(service)


def test_corrupt_upload_stores_nothing(
    image_service: ImageService,
    store: InMemorySessionStore,
    storage: InMemoryImageStorage,
) -> None:
    store.create("s1")

    with pytest.raises(ValidationFailedError, match="Invalid or corrupted"):
        _upload(image_service, data=b"corrupt-bytes")

    assert storage.files == {}
    assert store.get("s1").images == []


def test_upload_under_related_image_discards_files(
    image_service: ImageService,
    store: InMemorySessionStore,
    storage: InMemoryImageStorage,
) -> None:
    store.create("s1")
    primary = _upload(image_service)
    related = _upload(image_service, parent_image_id=primary.image_id)

    with pytest.raises(ValidationFailedError):
        _upload(image_service, parent_image_id=related.image_id)

    assert len(store.get("s1").images) == 2
    assert len(storage.files) == 4


def test_upload_with_unknown_parent_is_kept(
    image_service: ImageService, store: InMemorySessionStore
) -> None:
    store.create("s1")

    result = _upload(image_service, parent_image_id="missing")

    assert store.get_image("s1", result.image_id).parent_image_id == "missing"


def test_relate_validates_inputs(
    image_service: ImageService, store: InMemorySessionStore
) -> None:
    store.create("s1")
    first = _upload(image_service)
    second = _upload(image_service)

    with pytest.raises(ValidationFailedError, match="Parent image ID is required"):
        image_service.relate("s1", second.image_id, "")
    with pytest.raises(NotFoundError, match="Child image not found"):
        image_service.relate("s1", "missing", first.image_id)
    with pytest.raises(NotFoundError, match="Parent image not found"):
        image_service.relate("s1", second.image_id, "missing")
    with pytest.raises(ValidationFailedError, match="itself"):
        image_service.relate("s1", first.image_id, first.image_id)
    assert store.get_image("s1", first.image_id).parent_image_id is None
    assert store.get_image("s1", second.image_id).parent_image_id is None

    linked = image_service.relate("s1", second.image_id, first.image_id)

    assert linked.parent_image_id == first.image_id


def test_remove_cascades_and_deletes_files(
    image_service: ImageService,
    store: InMemorySessionStore,
    storage: InMemoryImageStorage,
) -> None:
    store.create("s1")
    primary = _upload(image_service)
    related = _upload(image_service, parent_image_id=primary.image_id)
    other = _upload(image_service)

    result = asyncio.run(image_service.remove("s1", primary.image_id))

    assert result.removed_image_ids == [primary.image_id, related.image_id]
    assert result.remaining_images == 1
    assert set(storage.files) == {
        f"s1/{other.image_id}.jpg",
        f"s1/{other.image_id}_thumb.jpg",
    }
    with pytest.raises(NotFoundError):
        asyncio.run(image_service.remove("s1", primary.image_id))


def test_read_original_and_thumbnail(
    image_service: ImageService,
    store: InMemorySessionStore,
    storage: InMemoryImageStorage,
) -> None:
    store.create("s1")
    result = _upload(image_service)

    original = asyncio.run(image_service.read_original("s1", result.image_id))
    thumbnail = asyncio.run(image_service.read_thumbnail("s1", result.image_id))

    assert original == b"jpeg:photo"
    assert thumbnail == b"thumb:photo"

    storage.files.clear()
    with pytest.raises(NotFoundError, match="Image file not found"):
        asyncio.run(image_service.read_original("s1", result.image_id))


def test_delete_session_removes_files(
    image_service: ImageService,
    store: InMemorySessionStore,
    storage: InMemoryImageStorage,
) -> None:
    store.create("s1")
    _upload(image_service)

    asyncio.run(image_service.delete_session("s1"))

    assert store.get("s1") is None
    assert storage.files == {}
    with pytest.raises(NotFoundError):
        asyncio.run(image_service.delete_session("s1"))
