"""Tests for logging configuration and selector events."""

from __future__ import annotations

import logging
from typing import Any

import msgspec
import pytest
from raceway import Adapters, Diagnostics, Port, Selector
from raceway._logging import LOGGER_NAME, add_component, configure_logging, get_logger
from structlog.testing import capture_logs

from .conftest import ManualTimers, Outcome


def _events(entries: list[dict[str, Any]], name: str) -> list[dict[str, Any]]:
    return [e for e in entries if e.get('event') == name]


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_handler_scoped_to_raceway_logger(self) -> None:
        """The handler goes on the raceway logger; root handlers are untouched."""
        root_handlers = list(logging.getLogger().handlers)

        handler = configure_logging(level='DEBUG')

        raceway_logger = logging.getLogger(LOGGER_NAME)
        assert handler in raceway_logger.handlers
        assert raceway_logger.level == logging.DEBUG
        assert raceway_logger.propagate is False
        assert logging.getLogger().handlers == root_handlers

    def test_reconfigure_replaces_handler(self) -> None:
        """A second call swaps the handler instead of stacking another one."""
        first = configure_logging(level='INFO')
        second = configure_logging(level='WARNING', json_output=False)

        handlers = logging.getLogger(LOGGER_NAME).handlers
        assert second in handlers
        assert first not in handlers
        assert logging.getLogger(LOGGER_NAME).level == logging.WARNING

    def test_json_line_carries_component(self, capsys: pytest.CaptureFixture[str]) -> None:
        """A dotted selector event renders as JSON with its component bound."""
        configure_logging(level='DEBUG', json_output=True)

        get_logger('raceway.selector').debug('selector.settled', winner='take', cancelled=2)

        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = msgspec.json.decode(line)
        assert record['event'] == 'selector.settled'
        assert record['component'] == 'selector'
        assert record['winner'] == 'take'
        assert record['level'] == 'debug'
        assert record['logger'] == 'raceway.selector'

    def test_level_filters_debug_events(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Events below the configured level are dropped."""
        configure_logging(level='INFO')

        get_logger('raceway.selector').debug('selector.settled', winner='take')

        assert 'selector.settled' not in capsys.readouterr().err

    def test_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Console rendering writes the event name to stderr."""
        configure_logging(level='INFO', json_output=False)

        get_logger('raceway.operation').info('operation.start_failed', adapter='task')

        assert 'operation.start_failed' in capsys.readouterr().err


class TestAddComponent:
    """Tests for the add_component processor."""

    def test_prefix_becomes_component(self) -> None:
        """The part before the first dot is bound as the component."""
        event = add_component(None, 'debug', {'event': 'selector.late_completion'})
        assert event['component'] == 'selector'

    def test_undotted_event_left_alone(self) -> None:
        """Plain messages get no component."""
        assert 'component' not in add_component(None, 'info', {'event': 'started'})

    def test_existing_component_kept(self) -> None:
        """A component bound by the caller wins over the prefix."""
        event = add_component(None, 'info', {'event': 'selector.settled', 'component': 'custom'})
        assert event['component'] == 'custom'


class TestSelectorEvents:
    """Selector events are emitted only when log_events is on."""

    def test_settlement_logged(self, timers: ManualTimers, outcome: Outcome) -> None:
        """Settling logs the winner and how many registrations were cancelled."""
        selector = Selector(
            outcome.on_success, outcome.on_failure, timers=timers, diagnostics=Diagnostics(log_events=True)
        )
        winner, loser = Port(), Port()
        selector.take(winner).take(loser)

        with capture_logs() as captured:
            winner.put(1, lambda _: None)

        settled = _events(captured, 'selector.settled')
        assert len(settled) == 1
        assert settled[0]['winner'] == 'take'
        assert settled[0]['cancelled'] == 2
        assert settled[0]['log_level'] == 'debug'

    def test_late_completion_logged(self, timers: ManualTimers, outcome: Outcome) -> None:
        """A timer left pending and firing after settlement is logged as late."""
        selector = Selector(
            outcome.on_success,
            outcome.on_failure,
            timers=timers,
            diagnostics=Diagnostics(log_events=True, cancel_timers=False),
        )
        port = Port()
        selector.timeout(1).take(port)
        port.put(1, lambda _: None)

        with capture_logs() as captured:
            timers.advance(1)

        late = _events(captured, 'selector.late_completion')
        assert len(late) == 1
        assert late[0]['source'] == 'timeout'
        assert late[0]['winner'] == 'take'

    def test_silent_by_default(self, selector: Selector) -> None:
        """Default diagnostics emit nothing on settlement."""
        port = Port()
        selector.take(port)

        with capture_logs() as captured:
            port.put(1, lambda _: None)

        assert _events(captured, 'selector.settled') == []

    def test_setup_failure_logged(self, timers: ManualTimers) -> None:
        """A failing setup routine is logged before it propagates."""
        adapters = Adapters(timers=timers, diagnostics=Diagnostics(log_events=True))

        def setup(s: Selector) -> None:
            raise ValueError('bad setup')

        with capture_logs() as captured, pytest.raises(ValueError):
            adapters.select(setup)(lambda _: None, lambda _: None)

        failed = _events(captured, 'selector.setup_failed')
        assert len(failed) == 1
        assert 'bad setup' in failed[0]['error']
        assert failed[0]['log_level'] == 'warning'

    def test_traced_start_failure_logged(self, timers: ManualTimers) -> None:
        """An operation with a captured stack logs it when starting fails."""
        adapters = Adapters(timers=timers, diagnostics=Diagnostics(capture_stacks=True))

        def explode(ok: Any, fail: Any) -> None:
            raise RuntimeError('boom')

        with capture_logs() as captured, pytest.raises(RuntimeError):
            adapters.task(explode)(lambda _: None, lambda _: None)

        failed = _events(captured, 'operation.start_failed')
        assert len(failed) == 1
        assert failed[0]['adapter'] == 'task'
        assert 'test_traced_start_failure_logged' in failed[0]['creation_stack']
