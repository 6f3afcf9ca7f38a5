"""Unit tests for broker selection and the worker entry module."""

from __future__ import annotations

import dramatiq
import pytest
from dramatiq.brokers.stub import StubBroker

from leadpipe.common import broker as broker_module


@pytest.fixture
def fresh_selection(monkeypatch: pytest.MonkeyPatch) -> list[dramatiq.Broker]:
    """Forget any chosen broker and record set_broker calls instead."""
    installed: list[dramatiq.Broker] = []
    monkeypatch.setattr(broker_module, "_selected", None)
    monkeypatch.setattr(dramatiq, "set_broker", installed.append)
    monkeypatch.delenv(broker_module.BROKER_URL_ENV, raising=False)
    monkeypatch.delenv(broker_module.ALLOW_STUB_ENV, raising=False)
    return installed


class TestStubBrokerAllowed:
    """Tests for stub_broker_allowed()."""

    def test_true_under_pytest(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test runs always get the stub broker."""
        monkeypatch.delenv(broker_module.ALLOW_STUB_ENV, raising=False)
        assert broker_module.stub_broker_allowed() is True

    @pytest.mark.parametrize(
        ("raw", "expected"), [("1", True), (" YES ", True), ("0", False)]
    )
    def test_env_flag(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool
    ) -> None:
        """The explicit flag enables the stub outside tests."""
        monkeypatch.setattr(broker_module, "running_under_pytest", lambda: False)
        monkeypatch.setenv(broker_module.ALLOW_STUB_ENV, raw)
        assert broker_module.stub_broker_allowed() is expected


class TestEnsureBrokerConfigured:
    """Tests for ensure_broker_configured()."""

    def test_url_selects_and_installs_amqp_broker(
        self,
        monkeypatch: pytest.MonkeyPatch,
        fresh_selection: list[dramatiq.Broker],
    ) -> None:
        """LEADPIPE_BROKER_URL wins over whatever broker is current."""
        urls: list[str] = []
        amqp = StubBroker()

        def _fake_rabbitmq(url: str) -> dramatiq.Broker:
            urls.append(url)
            return amqp

        monkeypatch.setattr(broker_module, "_rabbitmq_broker", _fake_rabbitmq)
        monkeypatch.setenv(broker_module.BROKER_URL_ENV, " amqp://mq:5672/%2F ")

        assert broker_module.ensure_broker_configured() is amqp
        assert broker_module.ensure_broker_configured() is amqp
        assert urls == ["amqp://mq:5672/%2F"]
        assert fresh_selection == [amqp]

    def test_keeps_current_broker(
        self, fresh_selection: list[dramatiq.Broker]
    ) -> None:
        """Without a URL the broker Dramatiq already has is reused."""
        assert broker_module.ensure_broker_configured() is dramatiq.get_broker()
        assert fresh_selection == []

    def test_falls_back_to_stub(
        self,
        monkeypatch: pytest.MonkeyPatch,
        fresh_selection: list[dramatiq.Broker],
    ) -> None:
        """With no broker at all, allowed processes get an in-memory one."""
        monkeypatch.setattr(broker_module, "_current_broker", lambda: None)

        selected = broker_module.ensure_broker_configured()

        assert isinstance(selected, StubBroker)
        assert fresh_selection == [selected]

    def test_refuses_without_any_broker(
        self,
        monkeypatch: pytest.MonkeyPatch,
        fresh_selection: list[dramatiq.Broker],
    ) -> None:
        """Production processes must name a broker."""
        monkeypatch.setattr(broker_module, "_current_broker", lambda: None)
        monkeypatch.setattr(broker_module, "running_under_pytest", lambda: False)

        with pytest.raises(RuntimeError, match=broker_module.BROKER_URL_ENV):
            broker_module.ensure_broker_configured()
        assert fresh_selection == []


class TestBindActors:
    """Tests for bind_actors() and the worker entry module."""

    def test_redeclares_actor_on_new_broker(self) -> None:
        """An actor declared elsewhere is moved onto the chosen broker."""
        origin = StubBroker()
        target = StubBroker()

        @dramatiq.actor(broker=origin, actor_name="relocated_actor")
        def _job() -> None:
            return None

        broker_module.bind_actors(target, [_job])
        broker_module.bind_actors(target, [_job])

        assert _job.broker is target
        assert target.get_actor("relocated_actor") is _job
        assert _job.queue_name in target.queues

    def test_worker_binds_every_actor(self) -> None:
        """The worker module exposes a broker holding all leadpipe actors."""
        from leadpipe import worker

        selected = worker.configure_actors()

        assert worker.broker is selected
        for actor in worker.ACTORS:
            assert actor.broker is selected
            assert selected.get_actor(actor.actor_name) is actor
