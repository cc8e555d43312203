"""Tests for the task file use cases."""

from __future__ import annotations

import io
import re
from datetime import timedelta
from functools import partial
from uuid import uuid4

import anyio
import pytest

from taskboard.application.use_cases.task_files import (
    FileUpload,
    FileValidationError,
    InvalidIdentifierError,
    TaskFileNotFoundError,
    TaskNotFoundError,
    delete_task_file,
    list_task_files,
    open_task_file_download,
    purge_task_files,
    sweep_orphaned_files,
    upload_task_file,
    upload_task_files,
)
from taskboard.application.use_cases.task_files.task_updates import (
    MAX_TASK_UPDATE_ATTEMPTS,
    save_task_with_retry,
)
from taskboard.domain.entities import TaskActivityType
from taskboard.infrastructure.chunk_store import ChunkStoreError
from taskboard.infrastructure.database import SessionLocal
from taskboard.infrastructure.repositories import ConcurrentTaskUpdateError, TaskRepository
from taskboard.utils import RangeNotSatisfiableError

MEBIBYTE = 1024 * 1024


def _upload(
    data: bytes = b"0123456789",
    name: str | None = "note.pdf",
    content_type: str | None = "application/pdf",
    size: int | None = None,
) -> FileUpload:
    return FileUpload(
        stream=io.BytesIO(data),
        original_name=name,
        content_type=content_type,
        size=len(data) if size is None else size,
    )


def _reload(task_id: str):
    with SessionLocal() as other:
        return TaskRepository(other).get(task_id)


def _rename_elsewhere(task_id: str, title: str) -> None:
    with SessionLocal() as other:
        repository = TaskRepository(other)
        task = repository.get(task_id)
        task.title = title
        repository.save(task)


def test_upload_attaches_the_file_to_its_task(session, chunk_store, admin_user, make_task) -> None:
    task = make_task()

    record = upload_task_file(
        session, chunk_store, task_id=task.id, upload=_upload(), user=admin_user
    )

    assert record.originalname == "note.pdf"
    assert record.size == 10
    assert record.content_type == "application/pdf"
    assert record.uploaded_by == admin_user.id
    assert re.fullmatch(r"\d{13}-note\.pdf", record.filename)

    stored = chunk_store.get(record.id)
    assert stored.filename == record.filename
    assert stored.metadata["taskId"] == task.id
    assert stored.metadata["originalName"] == "note.pdf"
    assert stored.metadata["uploadedBy"] == admin_user.id

    saved = _reload(task.id)
    assert [asset.id for asset in saved.assets] == [record.id]
    assert len(saved.activities) == 1
    activity = saved.activities[0]
    assert activity.type is TaskActivityType.FILE_ADDED
    assert activity.text == 'File "note.pdf" uploaded'
    assert activity.by == admin_user.id


def test_upload_normalizes_names_and_media_types(
    session, chunk_store, admin_user, make_task
) -> None:
    task = make_task()

    record = upload_task_file(
        session,
        chunk_store,
        task_id=task.id,
        upload=_upload(
            b"\x89PNG....", name="C:\\Users\\me\\scan.PNG", content_type="Image/PNG; q=1"
        ),
        user=admin_user,
    )

    assert record.originalname == "scan.PNG"
    assert record.content_type == "image/png"


@pytest.mark.parametrize(
    ("upload", "message"),
    [
        (_upload(size=20 * MEBIBYTE + 1), "File too large"),
        (_upload(name="notes.txt", content_type="text/plain"), "Invalid file type"),
        (_upload(name="notes.txt"), "Invalid file type"),
        (_upload(name="photo.pdf", content_type="text/plain"), "Invalid file type"),
        (_upload(content_type=None), "Invalid file type"),
        (_upload(name=None), "No file uploaded"),
        (_upload(name="../"), "Invalid file name"),
    ],
)
def test_rejected_uploads_never_reach_the_store(
    session, chunk_store, admin_user, make_task, upload: FileUpload, message: str
) -> None:
    task = make_task()

    with pytest.raises(FileValidationError, match=message):
        upload_task_file(session, chunk_store, task_id=task.id, upload=upload, user=admin_user)

    assert list(chunk_store.iter_files()) == []
    assert _reload(task.id).assets == []


def test_size_limit_is_inclusive(session, chunk_store, admin_user, make_task) -> None:
    task = make_task()

    record = upload_task_file(
        session,
        chunk_store,
        task_id=task.id,
        upload=_upload(b"a" * 32),
        user=admin_user,
        max_bytes=32,
    )
    assert record.size == 32

    with pytest.raises(FileValidationError):
        upload_task_file(
            session,
            chunk_store,
            task_id=task.id,
            upload=_upload(b"a" * 33),
            user=admin_user,
            max_bytes=32,
        )


def test_empty_files_are_accepted(session, chunk_store, admin_user, make_task) -> None:
    task = make_task()

    record = upload_task_file(
        session, chunk_store, task_id=task.id, upload=_upload(b""), user=admin_user
    )

    assert record.size == 0
    stored = chunk_store.get(record.id)
    assert stored.length == 0
    assert stored.chunk_count == 0
    assert [asset.id for asset in _reload(task.id).assets] == [record.id]


@pytest.mark.parametrize("task_id", [None, "", "T1", "not-a-uuid"])
def test_upload_requires_a_valid_task_id(session, chunk_store, admin_user, task_id) -> None:
    with pytest.raises(InvalidIdentifierError):
        upload_task_file(session, chunk_store, task_id=task_id, upload=_upload(), user=admin_user)


def test_upload_to_a_missing_or_trashed_task_fails(
    session, chunk_store, admin_user, make_task
) -> None:
    trashed = make_task(is_trashed=True)

    for task_id in (uuid4().hex, trashed.id):
        with pytest.raises(TaskNotFoundError):
            upload_task_file(
                session, chunk_store, task_id=task_id, upload=_upload(), user=admin_user
            )

    assert list(chunk_store.iter_files()) == []


def test_upload_discards_the_file_when_the_task_disappears(
    session, chunk_store, admin_user, make_task
) -> None:
    task = make_task()

    class DeletingSource(io.BytesIO):
        def read(self, size: int = -1) -> bytes:
            if self.tell() == 0:
                with SessionLocal() as other:
                    TaskRepository(other).delete(task.id)
            return super().read(size)

    upload = FileUpload(
        stream=DeletingSource(b"x" * 20),
        original_name="late.pdf",
        content_type="application/pdf",
        size=20,
    )

    with pytest.raises(TaskNotFoundError):
        upload_task_file(session, chunk_store, task_id=task.id, upload=upload, user=admin_user)

    assert list(chunk_store.iter_files()) == []


def test_concurrent_task_updates_are_retried(session, make_task) -> None:
    task = make_task()
    calls = []

    def mutate(target) -> None:
        calls.append(target.version)
        if len(calls) == 1:
            _rename_elsewhere(task.id, "Renamed elsewhere")
        target.stage = "in progress"

    repository = TaskRepository(session)
    saved = save_task_with_retry(repository, repository.get(task.id), mutate)

    assert len(calls) == 2
    assert calls[1] > calls[0]
    assert saved.title == "Renamed elsewhere"
    assert saved.stage == "in progress"


def test_task_update_gives_up_after_repeated_conflicts(session, make_task) -> None:
    task = make_task()
    calls = []

    def mutate(target) -> None:
        calls.append(target.version)
        _rename_elsewhere(task.id, f"Renamed {len(calls)}")

    repository = TaskRepository(session)
    with pytest.raises(ConcurrentTaskUpdateError):
        save_task_with_retry(repository, repository.get(task.id), mutate)

    assert len(calls) == MAX_TASK_UPDATE_ATTEMPTS


def test_batch_upload_reports_each_file(chunk_store, admin_user, make_task) -> None:
    task = make_task()
    uploads = [
        _upload(b"first file", name="first.pdf"),
        _upload(b"plain text", name="notes.txt", content_type="text/plain"),
        _upload(b"\xff\xd8 second", name="second.jpg", content_type="image/jpeg"),
    ]

    result = anyio.run(
        partial(
            upload_task_files,
            SessionLocal,
            chunk_store,
            task_id=task.id,
            uploads=uploads,
            user=admin_user,
            max_concurrency=2,
        )
    )

    assert [outcome.original_name for outcome in result.outcomes] == [
        "first.pdf",
        "notes.txt",
        "second.jpg",
    ]
    assert [outcome.succeeded for outcome in result.outcomes] == [True, False, True]
    assert result.is_partial
    assert not result.all_succeeded
    assert "Invalid file type" in result.failed[0].message

    saved = _reload(task.id)
    assert {asset.originalname for asset in saved.assets} == {"first.pdf", "second.jpg"}
    assert len(saved.activities) == 2
    assert len(list(chunk_store.iter_files())) == 2


def test_batch_upload_requires_files(chunk_store, admin_user, make_task) -> None:
    task = make_task()

    with pytest.raises(FileValidationError):
        anyio.run(
            partial(
                upload_task_files,
                SessionLocal,
                chunk_store,
                task_id=task.id,
                uploads=[],
                user=admin_user,
            )
        )


def test_large_batch_updates_the_task_once(chunk_store, admin_user, make_task) -> None:
    task = make_task()
    concurrency = 4
    count = MAX_TASK_UPDATE_ATTEMPTS * concurrency + 4
    uploads = [
        _upload(b"%PDF-1.4 " + bytes([index]), name=f"{index}.pdf") for index in range(count)
    ]

    result = anyio.run(
        partial(
            upload_task_files,
            SessionLocal,
            chunk_store,
            task_id=task.id,
            uploads=uploads,
            user=admin_user,
            max_concurrency=concurrency,
        )
    )

    assert result.all_succeeded
    assert len(result.succeeded) == count
    saved = _reload(task.id)
    assert sorted(asset.originalname for asset in saved.assets) == sorted(
        f"{index}.pdf" for index in range(count)
    )
    assert len(saved.activities) == count
    assert saved.version == task.version + 1
    assert len(list(chunk_store.iter_files())) == count


def test_batch_discards_every_file_when_the_task_disappears(
    chunk_store, admin_user, make_task
) -> None:
    task = make_task()

    class DeletingSource(io.BytesIO):
        def read(self, size: int = -1) -> bytes:
            if self.tell() == 0:
                with SessionLocal() as other:
                    TaskRepository(other).delete(task.id)
            return super().read(size)

    uploads = [
        _upload(b"first file", name="first.pdf"),
        FileUpload(
            stream=DeletingSource(b"x" * 20),
            original_name="late.pdf",
            content_type="application/pdf",
            size=20,
        ),
        _upload(b"third file", name="third.pdf"),
    ]

    result = anyio.run(
        partial(
            upload_task_files,
            SessionLocal,
            chunk_store,
            task_id=task.id,
            uploads=uploads,
            user=admin_user,
            max_concurrency=2,
        )
    )

    assert result.succeeded == []
    assert [outcome.message for outcome in result.outcomes] == ["Task not found"] * 3
    assert list(chunk_store.iter_files()) == []


def test_download_serves_whole_files_and_ranges(
    session, chunk_store, admin_user, make_task
) -> None:
    task = make_task()
    data = bytes(range(40))
    record = upload_task_file(
        session, chunk_store, task_id=task.id, upload=_upload(data), user=admin_user
    )

    download = open_task_file_download(session, chunk_store, file_id=record.id)
    with download.stream:
        assert not download.is_partial
        assert download.content_length == 40
        assert download.content_range is None
        assert download.content_type == "application/pdf"
        assert download.stream.read() == data

    download = open_task_file_download(
        session, chunk_store, file_id=record.id, range_header="bytes=10-19"
    )
    with download.stream:
        assert download.is_partial
        assert download.content_length == 10
        assert download.content_range == "bytes 10-19/40"
        assert download.stream.read() == data[10:20]

    with pytest.raises(RangeNotSatisfiableError):
        open_task_file_download(
            session, chunk_store, file_id=record.id, range_header="bytes=40-"
        )


def test_download_requires_a_known_attached_file(session, chunk_store, make_task) -> None:
    task = make_task()
    detached = chunk_store.upload_from_stream(
        "1-loose.pdf", io.BytesIO(b"loose"), metadata={"taskId": task.id}
    )

    with pytest.raises(InvalidIdentifierError):
        open_task_file_download(session, chunk_store, file_id="nope")
    with pytest.raises(TaskFileNotFoundError):
        open_task_file_download(session, chunk_store, file_id=uuid4().hex)
    with pytest.raises(TaskFileNotFoundError):
        open_task_file_download(session, chunk_store, file_id=detached.id)


def test_delete_detaches_and_removes_the_file(
    session, chunk_store, admin_user, make_task
) -> None:
    task = make_task()
    record = upload_task_file(
        session, chunk_store, task_id=task.id, upload=_upload(), user=admin_user
    )

    removed = delete_task_file(
        session, chunk_store, task_id=task.id, file_id=record.id, user=admin_user
    )

    assert removed.id == record.id
    assert chunk_store.find(record.id) is None
    saved = _reload(task.id)
    assert saved.assets == []
    assert [entry.type for entry in saved.activities] == [
        TaskActivityType.FILE_ADDED,
        TaskActivityType.FILE_DELETED,
    ]
    assert saved.activities[-1].text == 'File "note.pdf" deleted'
    with pytest.raises(TaskFileNotFoundError):
        open_task_file_download(session, chunk_store, file_id=record.id)


def test_delete_still_updates_the_task_when_storage_fails(
    session, chunk_store, admin_user, make_task, monkeypatch
) -> None:
    task = make_task()
    record = upload_task_file(
        session, chunk_store, task_id=task.id, upload=_upload(), user=admin_user
    )

    def failing_delete(file_id: str) -> None:
        raise ChunkStoreError("storage unavailable")

    monkeypatch.setattr(chunk_store, "delete", failing_delete)

    delete_task_file(session, chunk_store, task_id=task.id, file_id=record.id, user=admin_user)

    assert _reload(task.id).assets == []
    assert chunk_store.find(record.id) is not None
    with pytest.raises(TaskFileNotFoundError):
        open_task_file_download(session, chunk_store, file_id=record.id)


def test_delete_tolerates_already_missing_bytes(
    session, chunk_store, admin_user, make_task
) -> None:
    task = make_task()
    record = upload_task_file(
        session, chunk_store, task_id=task.id, upload=_upload(), user=admin_user
    )
    chunk_store.delete(record.id)

    delete_task_file(session, chunk_store, task_id=task.id, file_id=record.id, user=admin_user)

    assert _reload(task.id).assets == []


def test_delete_reports_unknown_files_and_tasks(
    session, chunk_store, admin_user, make_task
) -> None:
    task = make_task()

    with pytest.raises(TaskFileNotFoundError, match="File not found in task assets"):
        delete_task_file(
            session, chunk_store, task_id=task.id, file_id=uuid4().hex, user=admin_user
        )
    with pytest.raises(TaskNotFoundError):
        delete_task_file(
            session, chunk_store, task_id=uuid4().hex, file_id=uuid4().hex, user=admin_user
        )
    with pytest.raises(InvalidIdentifierError):
        delete_task_file(session, chunk_store, task_id=task.id, file_id="x", user=admin_user)


def test_list_task_files(session, chunk_store, admin_user, make_task) -> None:
    task = make_task()
    first = upload_task_file(
        session, chunk_store, task_id=task.id, upload=_upload(name="a.pdf"), user=admin_user
    )
    second = upload_task_file(
        session, chunk_store, task_id=task.id, upload=_upload(name="b.pdf"), user=admin_user
    )

    assert [record.id for record in list_task_files(session, task.id)] == [first.id, second.id]
    with pytest.raises(TaskNotFoundError):
        list_task_files(session, uuid4().hex)
    with pytest.raises(InvalidIdentifierError):
        list_task_files(session, "T1")


def test_purge_removes_every_file_of_a_task(
    session, chunk_store, admin_user, make_task
) -> None:
    task = make_task()
    records = [
        upload_task_file(
            session, chunk_store, task_id=task.id, upload=_upload(name=name), user=admin_user
        )
        for name in ("a.pdf", "b.pdf")
    ]
    chunk_store.delete(records[0].id)

    purged = purge_task_files(session, chunk_store, task.id)

    assert [record.id for record in purged] == [record.id for record in records]
    assert _reload(task.id).assets == []
    assert list(chunk_store.iter_files()) == []


def test_sweep_reclaims_only_unreferenced_files(
    session, chunk_store, admin_user, make_task
) -> None:
    task = make_task()
    attached = upload_task_file(
        session, chunk_store, task_id=task.id, upload=_upload(), user=admin_user
    )
    orphans = {
        chunk_store.upload_from_stream(
            "1-detached.pdf", io.BytesIO(b"detached"), metadata={"taskId": task.id}
        ).id,
        chunk_store.upload_from_stream(
            "2-gone.pdf", io.BytesIO(b"gone"), metadata={"taskId": uuid4().hex}
        ).id,
        chunk_store.upload_from_stream("3-anonymous.pdf", io.BytesIO(b"anon")).id,
    }

    fresh = sweep_orphaned_files(session, chunk_store, grace_period=timedelta(hours=1))
    assert fresh.scanned == 0

    preview = sweep_orphaned_files(
        session, chunk_store, grace_period=timedelta(0), dry_run=True
    )
    assert preview.scanned == 4
    assert set(preview.orphaned) == orphans
    assert preview.deleted == []
    assert len(list(chunk_store.iter_files())) == 4

    report = sweep_orphaned_files(session, chunk_store, grace_period=timedelta(0))
    assert set(report.deleted) == orphans
    assert report.failed == []
    assert [stored.id for stored in chunk_store.iter_files()] == [attached.id]
