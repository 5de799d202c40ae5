"""
Tests for the Monitoring Service

Covers subject lifecycle, event ingestion with rescoring, the
all-or-nothing event/counter transaction and concurrent increments.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from proctorly.core.exceptions import Conflict, NotFound, StoreFailure, ValidationError
from proctorly.models.event_types import RiskLevel
from proctorly.services.subject_store import SubjectStore


class TestSubjectLifecycle:

    def test_create_subject(self, service):
        subject = service.create_subject('s-1', 'Ada', 'ada@example.com')

        assert subject.status == 'active'
        assert subject.integrity_score == 100
        assert subject.focus_lost_count == 0
        assert subject.suspicious_event_count == 0
        assert subject.total_duration_seconds == 0
        assert subject.settings['focus_detection_enabled'] is True

        events = service.list_events('s-1')
        assert [e.event_type for e in events] == ['interview_started']
        assert events[0].severity == 'low'

    def test_create_with_settings(self, service):
        subject = service.create_subject('s-1', 'Ada', 'ada@example.com',
                                         settings={'audio_detection_enabled': False})

        assert subject.settings['audio_detection_enabled'] is False
        assert subject.settings['object_detection_enabled'] is True

    def test_duplicate_subject(self, service):
        service.create_subject('s-1', 'Ada', 'ada@example.com')

        with pytest.raises(Conflict):
            service.create_subject('s-1', 'Other', 'other@example.com')

        # Original subject and its start event are untouched
        assert service.get_subject('s-1').name == 'Ada'
        assert len(service.list_events('s-1')) == 1

    @pytest.mark.parametrize("subject_id,name,email", [
        (None, 'Ada', 'ada@example.com'),
        ('s-1', '', 'ada@example.com'),
        ('s-1', 'Ada', None),
    ])
    def test_missing_fields(self, service, subject_id, name, email):
        with pytest.raises(ValidationError):
            service.create_subject(subject_id, name, email)

    def test_unknown_subject(self, service):
        with pytest.raises(NotFound):
            service.get_subject('nobody')
        with pytest.raises(NotFound):
            service.end_session('nobody')
        with pytest.raises(NotFound):
            service.get_report('nobody')

    def test_end_session_without_events(self, service):
        service.create_subject('s-1', 'Ada', 'ada@example.com')

        subject = service.end_session('s-1')

        assert subject.status == 'completed'
        assert subject.end_time is not None
        assert subject.total_duration_seconds >= 0
        assert subject.integrity_score == 100
        assert service.list_events('s-1')[0].event_type == 'interview_ended'

    def test_update_descriptive_fields(self, service):
        service.create_subject('s-1', 'Ada', 'ada@example.com')

        subject = service.update_subject('s-1', {'name': 'Ada L.', 'status': 'terminated'})

        assert subject.name == 'Ada L.'
        assert subject.status == 'terminated'

    @pytest.mark.parametrize("fields", [
        {'integrity_score': 100},
        {'focus_lost_count': 0},
        {'subject_id': 'renamed'},
        {'status': 'paused'},
        {'email': ''},
        {'media_path': '/etc/passwd'},
    ])
    def test_update_rejects_invalid_fields(self, service, fields):
        service.create_subject('s-1', 'Ada', 'ada@example.com')

        with pytest.raises(ValidationError):
            service.update_subject('s-1', fields)

    def test_store_error_on_create(self, service, db_session, monkeypatch):
        """Driver errors other than duplicates surface as StoreFailure"""
        def broken_flush(*args, **kwargs):
            raise OperationalError('INSERT INTO subjects', {}, Exception('disk I/O error'))

        monkeypatch.setattr(db_session, 'flush', broken_flush)

        with pytest.raises(StoreFailure):
            service.create_subject('s-1', 'Ada', 'ada@example.com')

        monkeypatch.undo()
        with pytest.raises(NotFound):
            service.get_subject('s-1')

    def test_list_subjects(self, service):
        for i in range(3):
            service.create_subject(f's-{i}', f'Name {i}', f'{i}@example.com')
        service.end_session('s-1')

        assert len(service.list_subjects()) == 3
        assert [s.subject_id for s in service.list_subjects(status='completed')] == ['s-1']
        assert len(service.list_subjects(limit=2)) == 2
        with pytest.raises(ValidationError):
            service.list_subjects(status='unknown')


class TestRecordEvent:

    @pytest.fixture(autouse=True)
    def subject(self, service):
        return service.create_subject('s-1', 'Ada', 'ada@example.com')

    def test_focus_lost_rescores(self, service):
        service.record_event('s-1', 'focus_lost')

        subject = service.get_subject('s-1')
        assert subject.focus_lost_count == 1
        assert subject.integrity_score == 98

    def test_suspicious_rescores(self, service):
        event = service.record_event('s-1', 'phone_detected', confidence=0.91,
                                     bounding_box={'x': 1, 'y': 2, 'width': 30, 'height': 40},
                                     severity='high', metadata={'camera': 'front'})

        subject = service.get_subject('s-1')
        assert subject.suspicious_event_count == 1
        assert subject.integrity_score == 95
        assert event.bounding_box == {'x': 1.0, 'y': 2.0, 'width': 30.0, 'height': 40.0}
        assert event.extra_data == {'camera': 'front'}
        assert event.severity == 'high'

    def test_neutral_and_focus_regained_leave_score(self, service):
        service.record_event('s-1', 'focus_regained')
        service.record_event('s-1', 'no_face_detected')

        subject = service.get_subject('s-1')
        assert subject.focus_lost_count == 0
        assert subject.suspicious_event_count == 0
        assert subject.integrity_score == 100

    def test_defaults(self, service):
        event = service.record_event('s-1', 'focus_lost')

        assert event.severity == 'medium'
        assert event.timestamp is not None
        assert event.extra_data == {}

    @pytest.mark.parametrize("kwargs", [
        {'subject_id': None, 'event_type': 'focus_lost'},
        {'subject_id': 's-1', 'event_type': None},
        {'subject_id': 's-1', 'event_type': 'laser_detected'},
        {'subject_id': 's-1', 'event_type': 'focus_lost', 'confidence': 1.5},
        {'subject_id': 's-1', 'event_type': 'focus_lost', 'severity': 'extreme'},
        {'subject_id': 's-1', 'event_type': 'phone_detected', 'bounding_box': {'x': 1}},
    ])
    def test_validation(self, service, kwargs):
        with pytest.raises(ValidationError):
            service.record_event(**kwargs)
        assert service.get_subject('s-1').integrity_score == 100

    def test_unknown_subject(self, service):
        with pytest.raises(NotFound):
            service.record_event('nobody', 'focus_lost')

    def test_failed_counter_update_discards_event(self, service, monkeypatch):
        """No event is stored without its counter update"""
        def fail(*args, **kwargs):
            raise StoreFailure("counters unavailable")

        monkeypatch.setattr(service.subjects, 'compare_and_update_counters', fail)

        with pytest.raises(StoreFailure):
            service.record_event('s-1', 'phone_detected')

        monkeypatch.undo()
        assert [e.event_type for e in service.list_events('s-1')] == ['interview_started']
        assert service.get_subject('s-1').suspicious_event_count == 0

    def test_end_session_keeps_score_consistent(self, service):
        service.record_event('s-1', 'focus_lost')
        service.record_event('s-1', 'book_detected')

        subject = service.end_session('s-1')

        assert subject.integrity_score == 93
        assert subject.focus_lost_count == 1
        assert subject.suspicious_event_count == 1


class TestReports:

    def test_end_to_end_scenario(self, service):
        service.create_subject('s-1', 'Ada', 'ada@example.com')
        ended = service.end_session('s-1')
        assert ended.status == 'completed'
        assert ended.integrity_score == 100

        for _ in range(3):
            service.record_event('s-1', 'focus_lost')
        for _ in range(2):
            service.record_event('s-1', 'phone_detected')

        report = service.get_report('s-1')

        assert report.focus_lost_count == 3
        assert report.suspicious_event_count == 2
        assert report.integrity_score == 84
        assert report.risk_level == RiskLevel.MEDIUM
        # interview_started + interview_ended + 5 recorded
        assert report.total_events == 7

    def test_time_window(self, service):
        subject = service.create_subject('s-1', 'Ada', 'ada@example.com')
        start = subject.start_time
        service.record_event('s-1', 'focus_lost', timestamp=start + timedelta(minutes=10))
        service.record_event('s-1', 'phone_detected', timestamp=start + timedelta(minutes=70))
        service.record_event('s-1', 'book_detected', timestamp=start + timedelta(minutes=130))

        report = service.get_report('s-1', start + timedelta(minutes=60), start + timedelta(minutes=120))

        assert report.total_events == 1
        assert report.event_type_breakdown == {'phone_detected': 1}
        assert report.time_bucket_analysis['second_hour'].suspicious == 1
        # Score still reflects every recorded event
        assert report.integrity_score == 100 - 2 - 5 - 5

    def test_inverted_window_rejected(self, service):
        subject = service.create_subject('s-1', 'Ada', 'ada@example.com')

        with pytest.raises(ValidationError):
            service.get_report('s-1', subject.start_time + timedelta(hours=1), subject.start_time)

    def test_report_is_repeatable(self, service):
        service.create_subject('s-1', 'Ada', 'ada@example.com')
        service.record_event('s-1', 'eye_closure_detected')

        assert service.get_report('s-1').to_dict() == service.get_report('s-1').to_dict()

    def test_full_report_for_active_session(self, service):
        service.create_subject('s-1', 'Ada', 'ada@example.com')
        service.record_event('s-1', 'device_detected', confidence=0.7)

        report = service.build_full_report('s-1')

        assert report['candidate']['candidate_id'] == 's-1'
        assert report['candidate']['status'] == 'active'
        assert report['candidate']['total_duration_seconds'] >= 0
        assert report['statistics']['suspicious_event_count'] == 1
        assert [e['event_type'] for e in report['events']] == ['interview_started', 'device_detected']
        assert 'generated_at' in report

    def test_event_type_summary(self, service):
        service.create_subject('s-1', 'Ada', 'ada@example.com')
        service.record_event('s-1', 'focus_lost', confidence=0.5)
        service.record_event('s-1', 'focus_lost', confidence=0.7)
        service.record_event('s-1', 'phone_detected', confidence=0.9)

        summary = service.event_type_summary('s-1')

        assert summary[0]['event_type'] == 'focus_lost'
        assert summary[0]['count'] == 2
        assert summary[0]['avg_confidence'] == pytest.approx(0.6)
        assert {row['event_type'] for row in summary} == {'focus_lost', 'phone_detected', 'interview_started'}


class TestConcurrentIncrements:

    def test_concurrent_focus_lost(self, service, make_service):
        """N parallel focus_lost events yield focus_lost_count == N"""
        service.create_subject('s-1', 'Ada', 'ada@example.com')
        n = 20

        def record(_):
            worker = make_service()
            try:
                return worker.record_event('s-1', 'focus_lost').id
            finally:
                worker.db.close()

        with ThreadPoolExecutor(max_workers=8) as pool:
            ids = list(pool.map(record, range(n)))

        assert len(set(ids)) == n
        service.db.expire_all()
        subject = service.get_subject('s-1')
        assert subject.focus_lost_count == n
        assert subject.integrity_score == max(100 - 2 * n, 0)

    def test_concurrent_mixed_events(self, service, make_service):
        service.create_subject('s-1', 'Ada', 'ada@example.com')
        types = ['focus_lost', 'phone_detected'] * 6

        def record(event_type):
            worker = make_service()
            try:
                worker.record_event('s-1', event_type)
            finally:
                worker.db.close()

        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(record, types))

        service.db.expire_all()
        subject = service.get_subject('s-1')
        assert subject.focus_lost_count == 6
        assert subject.suspicious_event_count == 6
        assert subject.integrity_score == 100 - 12 - 30

    def test_counter_update_retries_after_lost_race(self, db_session, make_service):
        """A guarded update that matches no row is re-read and retried"""
        make_service().create_subject('s-1', 'Ada', 'ada@example.com')
        store = SubjectStore(db_session)
        rival = make_service()
        original_execute = db_session.execute
        calls = {'n': 0}

        def execute_with_interference(statement, *args, **kwargs):
            calls['n'] += 1
            if calls['n'] == 2:
                # Another writer commits between our read and our guarded update
                rival.record_event('s-1', 'focus_lost')
            return original_execute(statement, *args, **kwargs)

        db_session.execute = execute_with_interference
        try:
            subject = store.compare_and_update_counters('s-1', focus_lost_delta=1)
            db_session.commit()
        finally:
            db_session.execute = original_execute

        assert subject.focus_lost_count == 2
        assert subject.integrity_score == 96


class TestRecordingPaths:

    def test_stream_refuses_paths_outside_archive(self, service, media_dir):
        service.create_subject('s-1', 'Ada', 'ada@example.com')
        outside = media_dir.parent / 'secret.webm'
        outside.write_bytes(b'\0' * 10)
        service.subjects.update('s-1', {'media_path': str(media_dir / '..' / 'secret.webm')})
        service.db.commit()

        with pytest.raises(NotFound):
            service.stream_media('s-1')

    def test_discard_leaves_files_outside_archive(self, service, media_dir):
        outside = media_dir.parent / 'keep.webm'
        outside.write_bytes(b'\0')

        assert service.media.discard(outside) is False
        assert outside.exists()
