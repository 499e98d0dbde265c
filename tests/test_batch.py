import multiprocessing

import numpy as np
import pytest

import batch
import transduction
from batch import BatchAnalyzer
from data_matrix import DataMatrix
from errors import AnalysisCancelled
from intensity import Metric
from parameters import TransductionParameters
from transduction import TransductionAnalyzer

SHAPE = (60, 60)


@pytest.fixture(autouse=True)
def quiet(monkeypatch):
    monkeypatch.setattr(transduction, 'WRITE_TIME', False)
    monkeypatch.setattr(batch, 'WRITE_TIME', False)


@pytest.fixture
def named_images(draw_disks):
    one = DataMatrix.from_channels([draw_disks(SHAPE, [(15, 15), (45, 45)]),
                                    draw_disks(SHAPE, [(15, 15)], value=120)], name='one')
    single_channel = DataMatrix.from_channels([draw_disks(SHAPE, [(15, 15)])], name='single')
    two = DataMatrix.from_channels([draw_disks(SHAPE, [(15, 45)]),
                                    draw_disks(SHAPE, [(15, 45), (45, 15)], value=90)], name='two')
    return [('one.czi', one), ('single.czi', single_channel), ('two.czi', two)]


def test_serial_batch_skips_missing_channels(named_images, plain_params, capsys):
    result = BatchAnalyzer(plain_params, max_workers=1).process(named_images)

    assert [name for name, _ in result.results] == ['one.czi', 'two.czi']
    assert [name for name, _ in result.skipped] == ['single.czi']
    assert 'Channel 1 does not exist' in result.skipped[0][1]
    assert 'Skipping single.czi' in capsys.readouterr().out


def test_summary_rows(named_images, plain_params):
    rows = BatchAnalyzer(plain_params, max_workers=1).process(named_images).summary_rows()

    assert [row['file_name'] for row in rows] == ['one.czi', 'two.czi']
    assert rows[0]['transduction_efficiency'] == pytest.approx(50.0)
    assert rows[1]['transduced_cells_n'] == 2
    assert rows[1]['three_channel_cells_n'] is None
    assert all('cells' not in row for row in rows)


def test_metric_mappings(named_images, plain_params):
    result = BatchAnalyzer(plain_params, max_workers=1).process(named_images)
    mappings = result.metric_mappings()

    assert set(mappings) == set(Metric)
    assert mappings[Metric.MEAN] == [('one.czi', [120]), ('two.czi', [90])]
    assert result.max_rows() == 1


def test_empty_batch(plain_params):
    result = BatchAnalyzer(plain_params, max_workers=1).process([])
    assert result.results == [] and result.skipped == []
    assert result.summary_rows() == []
    assert result.max_rows() == 0


def test_pool_keeps_input_order(named_images, plain_params):
    result = BatchAnalyzer(plain_params, max_workers=2).process(named_images)

    assert [name for name, _ in result.results] == ['one.czi', 'two.czi']
    assert [name for name, _ in result.skipped] == ['single.czi']
    assert [r.transduced_cell_count for _, r in result.results] == [1, 2]


def test_cancel_stops_before_next_image(named_images, plain_params, monkeypatch):
    analyzer = BatchAnalyzer(plain_params, max_workers=1)
    seen = []

    def analyse(self, image, should_stop=None):
        seen.append(image.name)
        analyzer.cancel()
        return image.name

    monkeypatch.setattr(TransductionAnalyzer, 'analyse', analyse)
    result = analyzer.process(named_images)

    assert seen == ['one']
    assert result.results == [('one.czi', 'one')]


def test_cancel_abandons_running_image(named_images, plain_params, monkeypatch):
    analyzer = BatchAnalyzer(plain_params, max_workers=1)

    def analyse(self, image, should_stop=None):
        analyzer.cancel()
        if should_stop():
            raise AnalysisCancelled('cancelled')

    monkeypatch.setattr(TransductionAnalyzer, 'analyse', analyse)
    result = analyzer.process(named_images)
    assert result.results == [] and result.skipped == []

    monkeypatch.undo()
    monkeypatch.setattr(batch, 'WRITE_TIME', False)
    monkeypatch.setattr(transduction, 'WRITE_TIME', False)
    assert len(analyzer.process(named_images).results) == 2


def test_workers_stop_between_stages_once_cancelled(named_images, plain_params, monkeypatch):
    stop_event = multiprocessing.Event()
    monkeypatch.setattr(batch, '_stop_event', None)
    batch._init_worker(stop_event)

    result = batch._analyse_image(plain_params, TransductionParameters(), named_images[0][1])
    assert result.target_cell_count == 2

    stop_event.set()
    with pytest.raises(AnalysisCancelled):
        batch._analyse_image(plain_params, TransductionParameters(), named_images[0][1])


def test_cancel_signals_pool_workers(plain_params):
    analyzer = BatchAnalyzer(plain_params, max_workers=2)
    analyzer._stop_event = multiprocessing.Event()
    analyzer.cancel()
    assert analyzer._stop_event.is_set()
