import logging

import pytest

from utils.logging_utils import log_progress_bar, setup_logging
from utils.parallel_runner import ParallelTaskRunner


def test_setup_logging_attaches_one_handler():
    logger = setup_logging('debug', logger_name='HRVSetupTestLogger')
    setup_logging('warning', logger_name='HRVSetupTestLogger')
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1


def test_progress_bar_reports_to_logger(caplog):
    logger = logging.getLogger('HRVProgressTestLogger')
    with caplog.at_level(logging.DEBUG, logger='HRVProgressTestLogger'):
        update, close = log_progress_bar(logger, 2, desc="unit")
        update()
        update()
        close()
    assert len(caplog.records) == 3
    assert caplog.records[0].getMessage().startswith('unit - 1/2 series')
    assert '2/2' in caplog.records[-1].getMessage()


def test_runner_keeps_input_order_and_collects_failures():
    def task(value):
        if value == 2:
            raise ValueError("bad input")
        return value * 10

    done = []
    runner = ParallelTaskRunner(task, [1, 2, 3], 'HRVRunnerTestLogger', max_workers=2,
                                on_task_done=lambda: done.append(1))
    assert runner.run() == [10, None, 30]
    assert list(runner.errors) == [1]
    assert isinstance(runner.errors[1], ValueError)
    assert len(done) == 3


def test_runner_with_no_tasks():
    assert ParallelTaskRunner(abs, [], 'HRVRunnerTestLogger').run() == []


@pytest.mark.parametrize("level", ['info', 'nonsense'])
def test_setup_logging_falls_back_to_info(level):
    logger = setup_logging(level, logger_name='HRVLevelTestLogger')
    assert logger.level == logging.INFO
