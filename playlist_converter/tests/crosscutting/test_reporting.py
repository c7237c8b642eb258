import json

import pytest

from playlist_converter.crosscutting.reporting import (
    ConversionMetrics, TrackStatus, outcome_status, outcome_to_json, result_to_json, summary_to_json,
)
from playlist_converter.domain.entities import (
    BatchFailure, ConversionResult, ConversionSummary, DestinationTrack, TrackDescriptor, TrackOutcome,
)


SOURCE = TrackDescriptor(title="Song (Official Video)", artist="Band", source_id="v1")
MATCHED = TrackOutcome(
    source=SOURCE,
    matched=True,
    destination=DestinationTrack(title="Song", artist="Band", uri="spotify:track:1", score=0.7,
                                 duration_ms=200000, preview_url=None),
)


class TestOutcomeSerialization:

    def test_matched_outcome(self):
        data = outcome_to_json(MATCHED)

        assert data['youtube'] == {'title': 'Song (Official Video)', 'artist': 'Band', 'id': 'v1'}
        assert data['matched'] is True
        assert data['status'] == 'matched'
        assert data['spotify'] == {
            'title': 'Song', 'artist': 'Band', 'uri': 'spotify:track:1',
            'matchScore': 0.7, 'duration': 200000, 'previewUrl': None,
        }
        assert 'error' not in data

    def test_unmatched_outcome_has_no_destination(self):
        data = outcome_to_json(TrackOutcome.unmatched(SOURCE))

        assert data['matched'] is False
        assert data['status'] == 'not_found'
        assert 'spotify' not in data

    def test_failed_outcome_carries_error(self):
        outcome = TrackOutcome.failed(SOURCE, 'Spotify search rate limited')

        assert outcome_status(outcome) is TrackStatus.ERROR
        assert outcome_to_json(outcome)['error'] == 'Spotify search rate limited'


class TestResultSerialization:

    def test_summary_without_matches_has_null_average(self):
        data = summary_to_json(ConversionSummary(total=2, matched=0, unmatched=2))

        assert data['averageMatchScore'] is None
        assert '"averageMatchScore": null' in json.dumps(data)

    def test_result_shape(self):
        outcomes = (MATCHED, TrackOutcome.unmatched(SOURCE))
        result = ConversionResult(
            destination_playlist_url='https://open.spotify.com/playlist/pl1',
            destination_playlist_id='pl1',
            summary=ConversionSummary.from_outcomes(outcomes),
            outcomes=outcomes,
            batch_failures=(BatchFailure(0, ('spotify:track:1',), 'rejected'),),
            metrics={'search_calls': 4},
        )

        data = result_to_json(result)

        assert data['platform'] == 'spotify'
        assert data['playlistUrl'] == 'https://open.spotify.com/playlist/pl1'
        assert data['summary']['averageMatchScore'] == pytest.approx(0.7)
        assert len(data['tracks']) == 2
        assert data['partial'] is True
        assert data['batchErrors'] == [{
            'batchIndex': 0, 'trackCount': 1, 'trackIds': ['spotify:track:1'], 'error': 'rejected',
        }]
        assert data['metrics'] == {'search_calls': 4}


class TestConversionMetrics:

    def setup_method(self):
        self.metrics = ConversionMetrics()

    def test_counters_accumulate(self):
        self.metrics.record_search_calls(3)
        self.metrics.record_search_calls(1)
        self.metrics.record_strategy_hit('strict')
        self.metrics.record_strategy_hit('strict')
        self.metrics.record_strategy_hit(None)
        self.metrics.record_track_error()
        self.metrics.record_pacing_wait_ms(99.6)
        self.metrics.record_match_rate(ConversionSummary(total=4, matched=3, unmatched=1))

        data = self.metrics.get_metrics()

        assert data['search_calls'] == 4
        assert data['strategy_hits'] == {'strict': 2}
        assert data['track_errors'] == 1
        assert data['pacing_wait_ms'] == 100
        assert data['match_rate'] == 0.75

    def test_match_rate_of_empty_run(self):
        self.metrics.record_match_rate(ConversionSummary(total=0, matched=0, unmatched=0))
        assert self.metrics.get_metrics()['match_rate'] == 0.0

    def test_get_metrics_returns_copy(self):
        self.metrics.record_strategy_hit('strict')
        snapshot = self.metrics.get_metrics()
        snapshot['strategy_hits']['strict'] = 99

        assert self.metrics.get_metrics()['strategy_hits'] == {'strict': 1}

    def test_reset(self):
        self.metrics.record_search_calls(5)
        self.metrics.reset()
        assert self.metrics.get_metrics()['search_calls'] == 0
