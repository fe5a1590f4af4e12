import os
import tempfile
import threading
import unittest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt5.QtCore import QCoreApplication
from PyQt5.QtWidgets import QApplication

from video_annotater.domain import AppConfig, ContinuationMarker, Outcome, TrimPhase
from video_annotater.engine import AnnotationEngine
from video_annotater.persistence import marker_path, read_marker, write_marker
from video_annotater.playback import PlaybackPort


class FakePlaybackPort(PlaybackPort):
    """Records transport commands; position/duration are set by the test."""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.position = -1
        self.duration = None

    def load(self, path):
        self.calls.append(("load", os.path.basename(path)))
        self.position = -1
        self.duration = None

    def play(self):
        self.calls.append(("play",))

    def pause(self):
        self.calls.append(("pause",))

    def stop(self):
        self.calls.append(("stop",))

    def seek(self, position_ms):
        self.calls.append(("seek", position_ms))
        self.position = position_ms

    def set_rate(self, multiplier):
        self.calls.append(("rate", multiplier))

    def current_position(self):
        return self.position

    def current_duration(self):
        return self.duration

    def last(self, name):
        for c in reversed(self.calls):
            if c[0] == name:
                return c
        return None


def drain():
    QCoreApplication.processEvents()


class EngineCase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = QApplication.instance() or QApplication([])

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.folder = self._tmp.name
        self.port = FakePlaybackPort()
        self.engine = AnnotationEngine(self.port, AppConfig())
        self.snapshots = []
        self.engine.state_changed.connect(self.snapshots.append)

    def tearDown(self):
        drain()
        self._tmp.cleanup()

    def touch(self, *names):
        for n in names:
            with open(os.path.join(self.folder, n), "w", encoding="utf-8") as f:
                f.write("")

    def ledger(self, text=None):
        path = os.path.join(self.folder, "Anonce.md")
        if text is not None:
            with open(path, "w", encoding="utf-8") as f:
                f.write(text)
        if not os.path.exists(path):
            return ""
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def open_ok(self):
        res = self.engine.open_folder(self.folder)
        self.assertIs(res.outcome, Outcome.OK, res.message)
        return res


class TestScenarios(EngineCase):
    def test_annotate_then_next(self):
        self.touch("a.mp4", "b.mp4")
        self.open_ok()

        res = self.engine.start()
        self.assertTrue(res.ok)
        self.assertEqual(res.snapshot.current_name, "a.mp4")
        self.assertEqual(self.port.last("load"), ("load", "a.mp4"))

        self.port.position = 10_000
        res = self.engine.capture_begin()
        self.assertEqual(res.snapshot.trim_begin_ms, 7_000)
        self.assertFalse(res.snapshot.can_capture_begin)
        self.assertTrue(res.snapshot.can_capture_end)

        self.port.position = 20_000
        res = self.engine.capture_end()
        self.assertEqual(res.snapshot.trim_end_ms, 23_000)
        self.assertTrue(res.snapshot.awaiting_tags)
        self.assertEqual(self.port.calls[-1], ("pause",))

        res = self.engine.commit_tags("5", "9")
        self.assertTrue(res.ok)
        self.assertEqual(self.ledger(), "a.mp4 Start 00:00:07, Stop 00:00:23. IN = 5, OUT = 9\n")
        self.assertEqual(self.port.calls[-1], ("play",))
        self.assertIs(res.snapshot.trim_phase, TrimPhase.IDLE)
        self.assertIsNone(res.snapshot.trim_begin_ms)
        self.assertIsNone(res.snapshot.trim_end_ms)
        self.assertEqual(res.snapshot.progress_text, "1/2")
        self.assertTrue(res.snapshot.files[0].processed)

        res = self.engine.next()
        self.assertEqual(res.snapshot.current_name, "b.mp4")
        self.assertEqual(self.port.last("load"), ("load", "b.mp4"))

    def test_start_skips_annotated(self):
        self.touch("a.mp4", "b.mp4")
        self.ledger("a.mp4 Start 00:00:01, Stop 00:00:04. IN = 1, OUT = 2\n")
        self.open_ok()
        res = self.engine.start()
        self.assertEqual(res.snapshot.current_name, "b.mp4")
        self.assertEqual(res.snapshot.progress_text, "1/2")

    def test_resume_target_missing(self):
        self.touch("a.mp4", "b.mp4")
        write_marker(self.folder, ContinuationMarker("c.mp4", 5_000))

        res = self.engine.open_folder(self.folder)
        self.assertIs(res.outcome, Outcome.RESUME_OFFERED)
        self.assertTrue(res.snapshot.resume_pending)

        res = self.engine.resume()
        self.assertIs(res.outcome, Outcome.NOT_FOUND)
        self.assertIn("c.mp4", res.message)
        self.assertTrue(os.path.exists(marker_path(self.folder)))
        self.assertEqual(res.snapshot.current_index, -1)
        self.assertIsNone(self.port.last("load"))


class TestOpenFolder(EngineCase):
    def test_empty_catalog(self):
        self.touch("notes.txt")
        res = self.engine.open_folder(self.folder)
        self.assertIs(res.outcome, Outcome.EMPTY_CATALOG)
        self.assertIsNone(res.snapshot.folder)
        self.assertEqual(self.engine.start().outcome, Outcome.REJECTED)

    def test_missing_folder_propagates(self):
        with self.assertRaises(OSError):
            self.engine.open_folder(os.path.join(self.folder, "nope"))

    def test_initial_snapshot(self):
        self.touch("a.mp4")
        res = self.open_ok()
        snap = res.snapshot
        self.assertEqual(snap.current_index, -1)
        self.assertTrue(snap.can_start)
        self.assertFalse(snap.can_capture_begin)
        self.assertFalse(snap.can_capture_end)
        self.assertFalse(snap.can_next)
        self.assertIs(self.snapshots[-1], snap)

    def test_unreadable_marker_is_left_alone(self):
        self.touch("a.mp4")
        with open(marker_path(self.folder), "w", encoding="utf-8") as f:
            f.write("garbage")
        res = self.open_ok()
        self.assertTrue(res.snapshot.stale_marker)
        self.assertFalse(res.snapshot.resume_pending)
        self.assertTrue(os.path.exists(marker_path(self.folder)))


class TestResume(EngineCase):
    def test_accept_plays_and_seeks_once_length_known(self):
        self.touch("a.mp4", "B.mp4")
        write_marker(self.folder, ContinuationMarker("b.mp4", 42_000))
        self.engine.open_folder(self.folder)

        res = self.engine.resume()
        self.assertTrue(res.ok)
        self.assertEqual(res.snapshot.current_name, "B.mp4")
        self.assertIsNone(read_marker(self.folder))
        self.assertFalse(os.path.exists(marker_path(self.folder)))
        self.assertIsNone(self.port.last("seek"))

        self.port.length_known.emit(120_000)
        drain()
        self.assertEqual(self.port.last("seek"), ("seek", 42_000))
        self.assertEqual(self.engine.snapshot().duration_ms, 120_000)

        self.port.length_known.emit(120_000)
        drain()
        self.assertEqual([c for c in self.port.calls if c[0] == "seek"], [("seek", 42_000)])

    def test_decline_clears_marker(self):
        self.touch("a.mp4")
        write_marker(self.folder, ContinuationMarker("a.mp4", 1_000))
        self.engine.open_folder(self.folder)
        res = self.engine.decline_resume()
        self.assertTrue(res.ok)
        self.assertFalse(os.path.exists(marker_path(self.folder)))
        self.assertEqual(res.snapshot.current_index, -1)
        self.assertFalse(res.snapshot.resume_pending)

    def test_resume_without_marker_rejected(self):
        self.touch("a.mp4")
        self.open_ok()
        self.assertIs(self.engine.resume().outcome, Outcome.REJECTED)
        self.assertIs(self.engine.decline_resume().outcome, Outcome.REJECTED)


class TestTrimThroughEngine(EngineCase):
    def setUp(self):
        super().setUp()
        self.touch("a.mp4", "b.mp4", "c.mp4")
        self.open_ok()
        self.engine.start()

    def test_begin_clamps_negative_sentinel(self):
        self.port.position = -1
        res = self.engine.capture_begin()
        self.assertEqual(res.snapshot.trim_begin_ms, 0)

    def test_end_clamps_to_known_duration(self):
        self.port.length_known.emit(21_000)
        drain()
        self.port.position = 10_000
        self.engine.capture_begin()
        self.port.position = 20_000
        res = self.engine.capture_end()
        self.assertEqual(res.snapshot.trim_end_ms, 21_000)

    def test_end_uses_port_duration_when_no_event_yet(self):
        self.port.duration = 22_000
        self.port.position = 20_000
        self.engine.capture_begin()
        res = self.engine.capture_end()
        self.assertEqual(res.snapshot.trim_end_ms, 22_000)

    def test_end_requires_begin(self):
        res = self.engine.capture_end()
        self.assertIs(res.outcome, Outcome.REJECTED)
        self.assertIsNone(self.port.last("pause"))

    def test_begin_twice_rejected(self):
        self.engine.capture_begin()
        self.assertIs(self.engine.capture_begin().outcome, Outcome.REJECTED)

    def test_invalid_tags_stay_in_place(self):
        self.port.position = 10_000
        self.engine.capture_begin()
        self.engine.capture_end()
        calls_before = list(self.port.calls)

        res = self.engine.commit_tags("five", "9")
        self.assertIs(res.outcome, Outcome.VALIDATION_ERROR)
        self.assertTrue(res.snapshot.awaiting_tags)
        self.assertEqual(self.ledger(), "")
        self.assertEqual(self.port.calls, calls_before)

        res = self.engine.commit_tags(5, 9)
        self.assertTrue(res.ok)
        self.assertEqual(res.record.in_value, 5)

    def test_cancel_keeps_begin_and_resumes(self):
        self.port.position = 10_000
        self.engine.capture_begin()
        self.port.position = 15_000
        self.engine.capture_end()

        res = self.engine.cancel_tags()
        self.assertTrue(res.ok)
        self.assertEqual(self.port.calls[-1], ("play",))
        self.assertEqual(res.snapshot.trim_begin_ms, 7_000)
        self.assertIsNone(res.snapshot.trim_end_ms)
        self.assertFalse(res.snapshot.can_capture_begin)
        self.assertTrue(res.snapshot.can_capture_end)

        self.port.position = 30_000
        res = self.engine.capture_end()
        self.assertEqual(res.snapshot.trim_end_ms, 33_000)

    def test_cancel_outside_tag_step_rejected(self):
        self.assertIs(self.engine.cancel_tags().outcome, Outcome.REJECTED)

    def test_navigation_abandons_trim(self):
        self.port.position = 10_000
        self.engine.capture_begin()
        res = self.engine.next()
        self.assertEqual(res.snapshot.current_name, "b.mp4")
        self.assertIs(res.snapshot.trim_phase, TrimPhase.IDLE)
        self.assertIsNone(res.snapshot.trim_begin_ms)
        self.assertEqual(self.ledger(), "")

    def test_commit_failure_propagates_and_keeps_tag_step(self):
        self.engine.capture_begin()
        self.engine.capture_end()
        os.mkdir(os.path.join(self.folder, "Anonce.md"))
        with self.assertRaises(OSError):
            self.engine.commit_tags("1", "2")
        snap = self.engine.snapshot()
        self.assertTrue(snap.awaiting_tags)
        self.assertEqual(snap.processed_count, 0)


class TestNavigationThroughEngine(EngineCase):
    def test_next_wraps_and_reports_all_processed(self):
        self.touch("a.mp4", "b.mp4", "c.mp4")
        self.ledger("b.mp4 Start 00:00:01, Stop 00:00:02. IN = 1, OUT = 1\n")
        self.open_ok()

        self.assertEqual(self.engine.select_file(2).snapshot.current_name, "c.mp4")
        self.assertEqual(self.engine.next().snapshot.current_name, "a.mp4")

        self.engine.capture_begin()
        self.engine.capture_end()
        self.engine.commit_tags("0", "0")
        self.engine.select_file(2)
        self.engine.capture_begin()
        self.engine.capture_end()
        self.engine.commit_tags("0", "0")

        res = self.engine.next()
        self.assertIs(res.outcome, Outcome.ALL_PROCESSED)
        self.assertEqual(res.snapshot.current_name, "c.mp4")
        self.assertIs(self.engine.start().outcome, Outcome.ALL_PROCESSED)

    def test_select_file_refuses_processed_and_bad_index(self):
        self.touch("a.mp4", "b.mp4")
        self.ledger("A.MP4 Start 00:00:01, Stop 00:00:02. IN = 1, OUT = 1\n")
        self.open_ok()

        res = self.engine.select_file(0)
        self.assertIs(res.outcome, Outcome.ALREADY_PROCESSED)
        self.assertIn("Anonce.md", res.message)
        self.assertEqual(res.snapshot.current_index, -1)

        self.assertIs(self.engine.select_file(5).outcome, Outcome.REJECTED)
        self.assertIs(self.engine.select_file(-1).outcome, Outcome.REJECTED)
        self.assertTrue(self.engine.select_file(1).ok)

    def test_rate_and_play_pause(self):
        self.touch("a.mp4", "b.mp4")
        self.open_ok()
        self.assertIs(self.engine.toggle_play_pause().outcome, Outcome.REJECTED)

        self.engine.set_rate(3)
        self.assertEqual(self.port.last("rate"), ("rate", 3))
        self.engine.start()
        self.assertEqual(self.port.last("rate"), ("rate", 3))

        res = self.engine.toggle_play_pause()
        self.assertFalse(res.snapshot.playing)
        self.assertEqual(self.port.calls[-1], ("pause",))
        res = self.engine.toggle_play_pause()
        self.assertTrue(res.snapshot.playing)
        self.assertIs(self.engine.set_rate(0).outcome, Outcome.REJECTED)

    def test_seek_clamps(self):
        self.touch("a.mp4")
        self.open_ok()
        self.engine.start()
        self.port.length_known.emit(10_000)
        drain()
        self.engine.seek(50_000)
        self.assertEqual(self.port.last("seek"), ("seek", 10_000))
        self.engine.seek(-5)
        self.assertEqual(self.port.last("seek"), ("seek", 0))


class TestPortEvents(EngineCase):
    def setUp(self):
        super().setUp()
        self.touch("a.mp4")
        self.open_ok()
        self.engine.start()

    def test_events_are_queued_until_drained(self):
        self.port.position_changed.emit(5_000)
        self.assertEqual(self.engine.snapshot().position_ms, 0)
        drain()
        self.assertEqual(self.engine.snapshot().position_ms, 5_000)

        self.port.position_changed.emit(-1)
        drain()
        self.assertEqual(self.engine.snapshot().position_ms, 0)

    def test_events_applied_in_order(self):
        for pos in (1_000, 2_000, 3_000):
            self.port.position_changed.emit(pos)
        seen = []
        self.engine.position_updated.connect(seen.append)
        drain()
        self.assertEqual(seen, [1_000, 2_000, 3_000])

    def test_end_reached(self):
        self.port.end_reached.emit()
        drain()
        snap = self.engine.snapshot()
        self.assertTrue(snap.reached_end)
        self.assertFalse(snap.playing)

    def test_events_from_worker_thread_run_on_engine_thread(self):
        handled_on = []
        self.engine.position_updated.connect(lambda _pos: handled_on.append(threading.get_ident()))

        worker = threading.Thread(target=lambda: self.port.position_changed.emit(9_000))
        worker.start()
        worker.join()
        self.assertEqual(handled_on, [])

        drain()
        self.assertEqual(self.engine.snapshot().position_ms, 9_000)
        self.assertEqual(handled_on, [threading.main_thread().ident])

    def test_events_from_previous_file_are_dropped(self):
        self.touch("b.mp4")
        self.open_ok()
        self.engine.start()
        self.port.length_known.emit(21_000)
        self.port.position_changed.emit(20_000)
        self.port.end_reached.emit()

        self.engine.next()
        drain()
        snap = self.engine.snapshot()
        self.assertEqual(snap.current_name, "b.mp4")
        self.assertIsNone(snap.duration_ms)
        self.assertEqual(snap.position_ms, 0)
        self.assertFalse(snap.reached_end)

        self.port.position = 20_000
        self.engine.capture_begin()
        self.engine.capture_end()
        self.assertEqual(self.engine.snapshot().trim_end_ms, 23_000)

        self.port.length_known.emit(60_000)
        drain()
        self.assertEqual(self.engine.snapshot().duration_ms, 60_000)


class TestCloseSession(EngineCase):
    def test_nothing_open(self):
        decision = self.engine.close_session()
        self.assertFalse(decision.should_persist_marker)
        self.assertIsNone(self.engine.persist_continuation(decision))

    def test_targets_current_file_at_live_position(self):
        self.touch("a.mp4", "b.mp4")
        self.open_ok()
        self.engine.start()
        self.port.position = 61_500

        decision = self.engine.close_session()
        self.assertTrue(decision.should_persist_marker)
        self.assertEqual(decision.marker_target, ContinuationMarker("a.mp4", 61_500))
        self.assertEqual(self.engine.snapshot().position_ms, 0)

        self.engine.persist_continuation(decision)
        self.assertEqual(read_marker(self.folder), ContinuationMarker("a.mp4", 61_000))

        self.engine.discard_session()
        self.assertEqual(self.port.calls[-1], ("stop",))
        self.assertIsNone(self.engine.snapshot().folder)

    def test_targets_first_unprocessed_when_nothing_loaded(self):
        self.touch("a.mp4", "b.mp4")
        self.ledger("a.mp4 Start 00:00:01, Stop 00:00:02. IN = 1, OUT = 1\n")
        self.open_ok()
        decision = self.engine.close_session()
        self.assertEqual(decision.marker_target, ContinuationMarker("b.mp4", 0))
        self.engine.persist_continuation(decision)
        with open(marker_path(self.folder), "r", encoding="utf-8") as f:
            self.assertEqual(f.read(), "b.mp4\n00:00:00")

    def test_all_done_and_finished(self):
        self.touch("a.mp4")
        self.open_ok()
        self.engine.start()
        self.engine.capture_begin()
        self.engine.capture_end()
        self.engine.commit_tags("1", "1")

        self.assertTrue(self.engine.close_session().should_persist_marker)

        self.port.end_reached.emit()
        drain()
        decision = self.engine.close_session()
        self.assertFalse(decision.should_persist_marker)
        self.assertIsNone(decision.marker_target)

    def test_records_view(self):
        self.touch("a.mp4")
        self.open_ok()
        self.engine.start()
        self.port.position = 4_000
        self.engine.capture_begin()
        self.engine.capture_end()
        rec = self.engine.commit_tags("3", "4").record
        self.assertEqual(self.engine.ledger_records(), [rec])


if __name__ == "__main__":
    unittest.main()
