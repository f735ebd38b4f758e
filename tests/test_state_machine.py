from core.state_machine import ControllerEvent, ControllerState, LifecycleStateMachine


def test_state_machine_happy_path():
    sm = LifecycleStateMachine()
    assert sm.state == ControllerState.IDLE

    sm.transition(ControllerEvent.START)
    assert sm.state == ControllerState.STARTING

    sm.transition(ControllerEvent.STARTED)
    assert sm.state == ControllerState.RUNNING

    sm.transition(ControllerEvent.SIGNAL)
    assert sm.state == ControllerState.DRAINING

    sm.transition(ControllerEvent.DRAINED)
    assert sm.state == ControllerState.STOPPED


def test_state_machine_startup_failure():
    sm = LifecycleStateMachine()
    sm.transition(ControllerEvent.START)
    sm.transition(ControllerEvent.FAIL)
    assert sm.state == ControllerState.FAILED


def test_state_machine_running_failure():
    sm = LifecycleStateMachine()
    sm.transition(ControllerEvent.START)
    sm.transition(ControllerEvent.STARTED)
    sm.transition(ControllerEvent.FAIL)
    assert sm.state == ControllerState.FAILED


def test_invalid_transition_keeps_state(caplog):
    sm = LifecycleStateMachine()
    sm.transition(ControllerEvent.SIGNAL)
    assert sm.state == ControllerState.IDLE
    assert "Invalid state transition" in caplog.text
    assert caplog.records[-1].name == "relay.state"


def test_stopped_is_terminal():
    sm = LifecycleStateMachine()
    for event in (
        ControllerEvent.START,
        ControllerEvent.STARTED,
        ControllerEvent.SIGNAL,
        ControllerEvent.DRAINED,
    ):
        sm.transition(event)

    assert not any(sm.can(event) for event in ControllerEvent)
    sm.transition(ControllerEvent.START)
    assert sm.state == ControllerState.STOPPED
