import sys
import time
import unittest
from dataclasses import FrozenInstanceError
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from rtsp_client.frame import Frame
from rtsp_client.session_stats import (
    SessionRecord,
    SessionStatistics,
    sequence_gap,
    timestamp_is_behind,
)


def make_frame(seq: int, ts: int) -> Frame:
    return Frame(payload_type=26, marker=False, sequence_number=seq, timestamp=ts,
                 payload=memoryview(b"payload"))


class TestTimestampOrdering(unittest.TestCase):

    def test_forward_is_in_order(self):
        self.assertFalse(timestamp_is_behind(1000, 2000))

    def test_backward_is_out_of_order(self):
        self.assertTrue(timestamp_is_behind(2000, 1500))

    def test_equal_timestamps_are_in_order(self):
        self.assertFalse(timestamp_is_behind(5000, 5000))

    def test_wraparound_is_in_order(self):
        self.assertFalse(timestamp_is_behind(0xFFFFFF00, 0x100))

    def test_backward_across_wrap_is_out_of_order(self):
        self.assertTrue(timestamp_is_behind(0x100, 0xFFFFFF00))

    def test_small_gap_never_flags_forward_jumps(self):
        self.assertFalse(timestamp_is_behind(1000, 100000, max_gap=3000))
        self.assertFalse(timestamp_is_behind(0, 0x7FFFFFFF, max_gap=3000))
        self.assertTrue(timestamp_is_behind(2000, 1500, max_gap=3000))

    def test_large_gap_accepts_bigger_jumps(self):
        self.assertTrue(timestamp_is_behind(0, 0xB0000000))
        self.assertFalse(timestamp_is_behind(0, 0xB0000000, max_gap=0xC0000000))
        self.assertTrue(timestamp_is_behind(0, 0xD0000000, max_gap=0xC0000000))


class TestSequenceGap(unittest.TestCase):

    def test_consecutive(self):
        self.assertEqual(sequence_gap(1, 2), 0)

    def test_gap(self):
        self.assertEqual(sequence_gap(2, 5), 2)

    def test_wrap(self):
        self.assertEqual(sequence_gap(65535, 0), 0)
        self.assertEqual(sequence_gap(65534, 1), 2)

    def test_backward_and_duplicate(self):
        self.assertEqual(sequence_gap(10, 9), 0)
        self.assertEqual(sequence_gap(10, 10), 0)


class TestSessionStatistics(unittest.TestCase):

    def setUp(self):
        self.stats = SessionStatistics(accrual_interval_ms=5)

    def tearDown(self):
        self.stats.pause_playback()

    def test_begin_session(self):
        self.stats.begin_session("1234", "movie.mov")

        current = self.stats.current_session()

        self.assertEqual(current.session_id, "1234")
        self.assertEqual(current.media_name, "movie.mov")
        self.assertIsNotNone(current.start_time)
        self.assertIsNone(current.end_time)
        self.assertEqual(current.frames_played, 0)

    def test_frames_counted(self):
        self.stats.begin_session("1", "a")
        for i in range(5):
            self.stats.record_frame(make_frame(i, i * 100))

        current = self.stats.current_session()
        self.assertEqual(current.frames_played, 5)
        self.assertEqual(current.frames_out_of_order, 0)
        self.assertEqual(current.frames_lost, 0)

    def test_out_of_order_scenario(self):
        self.stats.begin_session("1", "a")

        flags = [self.stats.record_frame(make_frame(i, ts))
                 for i, ts in enumerate([1000, 2000, 1500])]

        self.assertEqual(flags, [False, False, True])
        self.assertEqual(self.stats.current_session().frames_out_of_order, 1)

    def test_configured_gap_keeps_skips_in_order(self):
        stats = SessionStatistics(max_timestamp_gap=3000)
        stats.begin_session("1", "a")

        flags = [stats.record_frame(make_frame(i, ts))
                 for i, ts in enumerate([1000, 100000, 99000])]

        self.assertEqual(flags, [False, False, True])
        self.assertEqual(stats.current_session().frames_out_of_order, 1)

    def test_open_session_snapshot(self):
        self.stats.begin_session("1", "a")
        self.stats.record_frame(make_frame(1, 100))

        snapshot = self.stats.current_session()

        self.assertIsInstance(snapshot, SessionRecord)
        self.assertIsNone(snapshot.end_time)
        with self.assertRaises(FrozenInstanceError):
            snapshot.frames_played = 5
        self.assertEqual(self.stats.sessions, [])

    def test_window_holds_recent_values(self):
        self.stats.begin_session("1", "a")
        for i in range(15):
            self.stats.record_frame(make_frame(i, i * 10))

        self.assertEqual(self.stats.recent_sequence_numbers(), list(range(5, 15)))
        self.assertEqual(self.stats.recent_timestamps(), [i * 10 for i in range(5, 15)])

    def test_window_reset_between_sessions(self):
        self.stats.begin_session("1", "a")
        self.stats.record_frame(make_frame(1, 900000))
        self.stats.end_session()

        self.stats.begin_session("2", "a")
        self.assertEqual(self.stats.recent_timestamps(), [])
        flagged = self.stats.record_frame(make_frame(1, 100))

        self.assertFalse(flagged)
        self.assertEqual(self.stats.current_session().frames_out_of_order, 0)

    def test_loss_not_counted_by_default(self):
        self.stats.begin_session("1", "a")
        for seq in (1, 2, 5):
            self.stats.record_frame(make_frame(seq, seq * 10))
        self.assertEqual(self.stats.current_session().frames_lost, 0)

    def test_loss_detection_when_enabled(self):
        stats = SessionStatistics(detect_loss=True)
        stats.begin_session("1", "a")
        for seq, ts in ((1, 10), (2, 20), (5, 50), (65535, 60), (0, 70)):
            stats.record_frame(make_frame(seq, ts))

        # 1->2 ok, 2->5 loses 3 and 4, 5->65535 is backwards, 65535->0 wraps
        self.assertEqual(stats.current_session().frames_lost, 2)

    def test_record_without_session_is_ignored(self):
        with self.assertLogs('rtsp_client.session_stats', level='WARNING'):
            self.assertFalse(self.stats.record_frame(make_frame(1, 1)))

    def test_request_count_requires_session(self):
        with self.assertRaises(RuntimeError):
            self.stats.set_request_count(3)

    def test_end_session_finalizes(self):
        self.stats.begin_session("1234", "movie.mov")
        self.stats.record_frame(make_frame(1, 1))
        self.stats.set_request_count(4)

        finished = self.stats.end_session()

        self.assertIsNone(self.stats.current_session())
        self.assertIsNotNone(finished.end_time)
        self.assertGreaterEqual(finished.end_time, finished.start_time)
        self.assertEqual(finished.request_count, 4)
        self.assertEqual(self.stats.sessions, [finished])
        with self.assertRaises(AttributeError):
            finished.frames_played = 10

    def test_end_session_without_session(self):
        self.assertIsNone(self.stats.end_session())

    def test_begin_session_finalizes_unfinished_one(self):
        self.stats.begin_session("1", "a")
        with self.assertLogs('rtsp_client.session_stats', level='WARNING'):
            self.stats.begin_session("2", "b")
        self.assertEqual([s.session_id for s in self.stats.sessions], ["1"])
        self.assertEqual(self.stats.current_session().session_id, "2")

    def test_playback_accrual(self):
        self.stats.begin_session("1", "a")
        self.stats.begin_playback()
        self.assertTrue(self.stats.playing)
        time.sleep(0.1)
        self.stats.pause_playback()

        elapsed = self.stats.current_session().playback_elapsed_ms
        self.assertGreaterEqual(elapsed, 90.0)
        self.assertFalse(self.stats.playing)

        time.sleep(0.05)
        self.assertEqual(self.stats.current_session().playback_elapsed_ms, elapsed)

    def test_accrual_resumes_after_pause(self):
        self.stats.begin_session("1", "a")
        self.stats.begin_playback()
        time.sleep(0.03)
        self.stats.pause_playback()
        first = self.stats.current_session().playback_elapsed_ms

        self.stats.begin_playback()
        time.sleep(0.03)
        self.stats.pause_playback()

        self.assertGreater(self.stats.current_session().playback_elapsed_ms, first)

    def test_end_session_stops_accrual(self):
        self.stats.begin_session("1", "a")
        self.stats.begin_playback()
        time.sleep(0.02)

        finished = self.stats.end_session()

        self.assertFalse(self.stats.playing)
        self.assertGreater(finished.playback_elapsed_ms, 0.0)

    def test_begin_playback_requires_session(self):
        with self.assertRaises(RuntimeError):
            self.stats.begin_playback()

    def test_report_frame_rate(self):
        self.stats.begin_session("1234", "movie.mov")
        self.stats.begin_playback()
        for i in range(10):
            self.stats.record_frame(make_frame(i, i * 3000))
        time.sleep(0.05)
        self.stats.end_session()

        [report] = self.stats.report()

        self.assertEqual(report.session_id, "1234")
        self.assertEqual(report.frames_played, 10)
        self.assertGreater(report.playback_seconds, 0.0)
        self.assertAlmostEqual(report.frame_rate, 10 / report.playback_seconds)
        self.assertGreaterEqual(report.session_seconds, 0.0)

    def test_report_zero_playback(self):
        self.stats.begin_session("1", "a")
        self.stats.record_frame(make_frame(1, 1))
        self.stats.end_session()

        [report] = self.stats.report()

        self.assertEqual(report.playback_seconds, 0.0)
        self.assertEqual(report.frame_rate, 0.0)

    def test_report_excludes_open_session(self):
        self.stats.begin_session("1", "a")
        self.assertEqual(self.stats.report(), [])

    def test_format_report(self):
        self.assertEqual(self.stats.format_report(), "No completed sessions.")

        self.stats.begin_session("1234", "movie.mov")
        self.stats.end_session()
        text = self.stats.format_report()

        self.assertIn("id=1234", text)
        self.assertIn("movie.mov", text)
        self.assertIn("average rate", text)

    def test_dataframe(self):
        self.assertEqual(len(self.stats.to_dataframe()), 0)

        for sid in ("a", "b"):
            self.stats.begin_session(sid, "movie.mov")
            self.stats.record_frame(make_frame(1, 1))
            self.stats.end_session()

        df = self.stats.to_dataframe()

        self.assertEqual(list(df['session_id']), ["a", "b"])
        self.assertEqual(int(df['frames_played'].sum()), 2)
        self.assertIn('frame_rate', df.columns)


if __name__ == '__main__':
    unittest.main()
