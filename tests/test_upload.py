"""
Tests for the Upload Controller state machine
"""
import asyncio

from portal.core.upload import UploadController
from portal.errors import StoreError, TransferError, ValidationError
from portal.models import SubmitterIdentity, UploadPhase

from conftest import MB, FakeClock, FakeStore, video_file


def make_controller(store, settings, identity=None):
    return UploadController(store, settings, identity=identity, clock=store.clock)


def test_initial_state(fake_store, settings):
    controller = make_controller(fake_store, settings)
    assert controller.phase == UploadPhase.IDLE
    assert controller.selected_file is None
    assert controller.submit_enabled


def test_select_video_file(fake_store, settings):
    controller = make_controller(fake_store, settings)
    assert controller.select_file(video_file())
    assert controller.phase == UploadPhase.FILE_SELECTED
    assert controller.selected_file.name == "demo.mp4"


def test_reject_non_video_file_without_state_change(fake_store, settings):
    """Wrong MIME type: message shown, selection and phase untouched"""
    controller = make_controller(fake_store, settings)
    controller.select_file(video_file(name="first.mov", content_type="video/quicktime"))

    assert not controller.select_file(video_file(name="notes.pdf", content_type="application/pdf"))
    assert controller.selected_file.name == "first.mov"
    assert controller.phase == UploadPhase.FILE_SELECTED
    assert isinstance(controller.error, ValidationError)
    assert controller.message == "Please select a valid video file."


def test_new_selection_replaces_previous(fake_store, settings):
    controller = make_controller(fake_store, settings)
    controller.select_file(video_file(name="a.mp4"))
    controller.select_file(video_file(name="b.mp4"))
    assert controller.selected_file.name == "b.mp4"
    assert fake_store.upload_calls == []


def test_remove_file_returns_to_idle(fake_store, settings):
    controller = make_controller(fake_store, settings)
    controller.select_file(video_file())
    controller.remove_file()
    assert controller.selected_file is None
    assert controller.phase == UploadPhase.IDLE


def test_empty_title_never_reaches_store(fake_store, settings):
    controller = make_controller(fake_store, settings)
    controller.select_file(video_file())

    result = asyncio.run(controller.submit("   ", 3))

    assert result is None
    assert fake_store.upload_calls == []
    assert fake_store.record_calls == []
    assert controller.error.field == "title"
    assert controller.phase == UploadPhase.FILE_SELECTED


def test_missing_file_never_reaches_store(fake_store, settings):
    controller = make_controller(fake_store, settings)

    result = asyncio.run(controller.submit("Demo", 3))

    assert result is None
    assert fake_store.upload_calls == []
    assert fake_store.record_calls == []
    assert controller.error.field == "file"
    assert controller.phase == UploadPhase.IDLE


def test_team_count_bounds(fake_store, settings):
    controller = make_controller(fake_store, settings)
    controller.select_file(video_file())

    for bad in (0, -2, settings.max_team_count + 1, "many", None):
        asyncio.run(controller.submit("Demo", bad))
        assert controller.error.field == "team_count"

    assert fake_store.upload_calls == []


def test_team_count_accepts_form_strings(fake_store, settings):
    controller = make_controller(fake_store, settings)
    controller.select_file(video_file())
    submission = asyncio.run(controller.submit("Demo", " 4 "))
    assert submission.team_count == 4


def test_file_larger_than_limit_rejected(fake_store, settings):
    limited = settings.model_copy(update={"max_upload_mb": 5})
    controller = make_controller(fake_store, limited)
    controller.select_file(video_file(size=6 * MB))

    asyncio.run(controller.submit("Demo", 1))

    assert controller.error.field == "file"
    assert fake_store.upload_calls == []


def test_end_to_end_submission(fake_store, settings):
    """10 MB file, progress 0/50/100, one record call, form reset to Idle"""
    controller = make_controller(fake_store, settings)
    controller.select_file(video_file(size=10 * MB))

    async def scenario():
        channel = controller.subscribe()
        submission = await controller.submit("  Demo  ", 3)
        percents = [event.percent async for event in channel]
        return submission, percents

    submission, percents = asyncio.run(scenario())

    assert percents == [0, 50, 100]
    assert len(fake_store.upload_calls) == 1
    assert len(fake_store.record_calls) == 1
    record = fake_store.record_calls[0]
    assert record.title == "Demo"
    assert record.team_count == 3
    assert record.location == "/media/obj-1"

    assert submission.title == "Demo"
    assert controller.outcome == UploadPhase.DONE
    assert controller.message
    assert controller.phase == UploadPhase.IDLE
    assert controller.selected_file is None
    assert controller.title == ""
    assert controller.team_count == 1


def test_phases_run_in_order(fake_store, settings):
    controller = make_controller(fake_store, settings)
    controller.select_file(video_file())
    asyncio.run(controller.submit("Demo", 2))
    assert controller.phase_history == [
        UploadPhase.IDLE,
        UploadPhase.FILE_SELECTED,
        UploadPhase.VALIDATING,
        UploadPhase.UPLOADING,
        UploadPhase.RECORDING,
        UploadPhase.DONE,
        UploadPhase.IDLE,
    ]


def test_identity_fields_are_recorded(fake_store, settings):
    identity = SubmitterIdentity(full_name="Jane", username="jdoe", tg_id="42")
    controller = make_controller(fake_store, settings, identity=identity)
    controller.select_file(video_file())
    asyncio.run(controller.submit("Demo", 2))

    record = fake_store.record_calls[0]
    assert (record.full_name, record.username, record.tg_id) == ("Jane", "jdoe", "42")


def test_empty_identity_recorded_as_none(fake_store, settings):
    controller = make_controller(fake_store, settings)
    controller.select_file(video_file())
    asyncio.run(controller.submit("Demo", 2))

    record = fake_store.record_calls[0]
    assert record.full_name is None and record.username is None and record.tg_id is None


def test_progress_is_monotonic_and_hits_100_only_at_end(settings):
    steps = [0.0, 0.1, 0.33, 0.5, 0.999, 1.0]
    store = FakeStore(progress_steps=steps)
    controller = make_controller(store, settings)
    controller.select_file(video_file(size=1000))

    async def scenario():
        channel = controller.subscribe()
        await controller.submit("Demo", 1)
        return [event async for event in channel]

    events = asyncio.run(scenario())
    percents = [event.percent for event in events]

    assert percents == sorted(percents)
    assert percents[-1] == 100
    assert all(e.percent < 100 for e in events if e.bytes_sent < e.bytes_total)


def test_progress_reports_speed_and_eta(settings):
    clock = FakeClock(start=0.0)
    store = FakeStore(progress_steps=[0.5, 1.0], clock=clock)
    controller = make_controller(store, settings)
    controller.select_file(video_file(size=1000))

    async def scenario():
        channel = controller.subscribe()
        await controller.submit("Demo", 1)
        return [event async for event in channel]

    halfway, done = asyncio.run(scenario())
    # FakeStore advances the clock one second per step
    assert halfway.elapsed == 1.0
    assert halfway.speed == 500.0
    assert halfway.eta == 1.0
    assert done.eta == 0.0


def test_double_submit_uploads_once(settings):
    """A second submit while Uploading is ignored"""
    store = FakeStore(hold_upload=True)
    controller = make_controller(store, settings)
    controller.select_file(video_file())

    async def scenario():
        first = controller.start_submit("Demo", 1)
        second = controller.start_submit("Demo", 1)
        await store.upload_started.wait()
        assert controller.phase == UploadPhase.UPLOADING
        assert not controller.submit_enabled
        third = await controller.submit("Demo", 1)
        store.release_upload.set()
        return await asyncio.gather(first, second), third

    (first, second), third = asyncio.run(scenario())

    assert first is not None
    assert second is None
    assert third is None
    assert len(store.upload_calls) == 1
    assert len(store.record_calls) == 1


def test_transfer_failure_keeps_selected_file(settings):
    store = FakeStore(fail_upload=True)
    controller = make_controller(store, settings)
    controller.select_file(video_file())

    result = asyncio.run(controller.submit("Demo", 2))

    assert result is None
    assert isinstance(controller.error, TransferError)
    assert controller.outcome == UploadPhase.FAILED
    assert controller.phase == UploadPhase.FILE_SELECTED
    assert controller.selected_file is not None
    assert controller.title == "Demo"
    assert store.record_calls == []
    assert controller.submit_enabled


def test_retry_after_transfer_failure(settings):
    store = FakeStore(fail_upload=True)
    controller = make_controller(store, settings)
    controller.select_file(video_file())
    asyncio.run(controller.submit("Demo", 2))

    store.fail_upload = False
    submission = asyncio.run(controller.submit("Demo", 2))

    assert submission is not None
    assert len(store.upload_calls) == 2
    assert len(store.record_calls) == 1


def test_record_failure_reports_orphaned_object(settings):
    store = FakeStore(fail_record=True)
    controller = make_controller(store, settings)
    controller.select_file(video_file())

    result = asyncio.run(controller.submit("Demo", 2))

    assert result is None
    assert isinstance(controller.error, StoreError)
    assert controller.error.location == "/media/obj-1"
    assert controller.phase == UploadPhase.IDLE
    assert controller.selected_file is None
    assert len(store.upload_calls) == 1


def test_unexpected_upload_error_is_contained(settings):
    class BrokenStore(FakeStore):
        async def upload(self, file, on_progress=None):
            raise RuntimeError("boom")

    controller = make_controller(BrokenStore(), settings)
    controller.select_file(video_file())

    assert asyncio.run(controller.submit("Demo", 2)) is None
    assert isinstance(controller.error, TransferError)
    assert controller.phase == UploadPhase.FILE_SELECTED


def test_unexpected_record_error_clears_selection(settings):
    class BrokenRecordStore(FakeStore):
        async def record_submission(self, data):
            self.record_calls.append(data)
            raise RuntimeError("connection pool exhausted")

    store = BrokenRecordStore()
    controller = make_controller(store, settings)
    controller.select_file(video_file())

    assert asyncio.run(controller.submit("Demo", 2)) is None
    assert isinstance(controller.error, StoreError)
    assert controller.error.location == "/media/obj-1"
    assert controller.message == "Failed to save submission. Please try again."
    assert controller.selected_file is None
    assert controller.phase == UploadPhase.IDLE
    assert len(store.record_calls) == 1


def test_teardown_abandons_in_flight_attempt(settings):
    store = FakeStore(hold_upload=True)
    controller = make_controller(store, settings)
    controller.select_file(video_file())

    async def scenario():
        channel = controller.subscribe()
        task = controller.start_submit("Demo", 1)
        await store.upload_started.wait()
        controller.teardown()
        await asyncio.gather(task, return_exceptions=True)
        return task, [event async for event in channel]

    task, events = asyncio.run(scenario())

    assert task.cancelled()
    assert events == []
    assert store.record_calls == []
    assert not controller.submit_enabled
    assert not controller.select_file(video_file())
