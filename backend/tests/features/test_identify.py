"""Identify feature — stage machine, stale-result discarding, end-to-end runs.

Tests cover:
    - Non-picture submission: same state object + warning notification
    - Submission bumps generation, resets results, reads the picture
    - Picture + catalog → CLASSIFYING, whichever arrives last
    - Stale completions (older generation) are ignored (same state, no effects)
    - Failures set Failure(message) and notify
    - Failed catalog stalls the pipeline at PICTURE_READY
    - Full runs through Program with fake collaborators, including a
      submission dispatched from a worker thread
"""

import threading
from dataclasses import replace
from pathlib import Path

from breedfinder.core.breed_index import BreedIndex
from breedfinder.core.domain_types import Classification, Probe, SearchResults, Severity
from breedfinder.core.errors import ReadError
from breedfinder.core.remote_data import LOADING, NOT_ASKED, Failure, Succeed
from breedfinder.core.runtime import EffectContext, Program
from breedfinder.features import aviary, identify
from breedfinder.features.identify import Stage
from breedfinder.infrastructure.notifier import RecordingNotifier

from tests.fakes import LISTING, PNG_DATA_URL, FakeFiles, FakeVision, fake_environment, success

INDEX = BreedIndex.from_listing(LISTING)
RESULTS = SearchResults(Probe(0.8, "pug"), ("https://images.test/pug/1.jpg",))


def _run_notifications(effects) -> list[tuple[str, str]]:
    """Execute effects that only notify; return what they showed."""
    notifier = RecordingNotifier()
    for effect in effects:
        effect(lambda a: None, EffectContext(notifier=notifier))
    return notifier.notifications


def _ready_state(**changes) -> identify.State:
    base = identify.State(catalog=Succeed(INDEX))
    return replace(base, **changes)


# --- Pure transitions ---------------------------------------------------------

def test_init_loads_catalog_through_aviary():
    state, effects = identify.init()
    assert state.stage is Stage.IDLE
    assert state.catalog is LOADING
    assert len(effects) == 1


def test_non_picture_submission_keeps_same_state_and_warns():
    state = _ready_state()
    next_state, effects = identify.update(identify.PictureSubmitted(None), state)

    assert next_state is state
    assert _run_notifications(effects) == [("warning", identify.NOT_A_PICTURE)]


def test_submission_starts_loading_and_bumps_generation():
    state = _ready_state(stage=Stage.RESULTS_READY, generation=3, results=Succeed(RESULTS))

    next_state, effects = identify.update(identify.PictureSubmitted(Path("dog.png")), state)

    assert next_state.stage is Stage.PICTURE_LOADING
    assert next_state.generation == 4
    assert next_state.picture is LOADING
    assert next_state.results is NOT_ASKED
    assert len(effects) == 1


def test_picture_read_with_catalog_starts_classifying():
    state = _ready_state(stage=Stage.PICTURE_LOADING, generation=1, picture=LOADING)

    next_state, effects = identify.update(identify.PictureRead(1, PNG_DATA_URL), state)

    assert next_state.stage is Stage.CLASSIFYING
    assert next_state.picture == Succeed(PNG_DATA_URL)
    assert next_state.results is LOADING
    assert len(effects) == 1


def test_picture_read_without_catalog_waits():
    state = identify.State(stage=Stage.PICTURE_LOADING, generation=1, catalog=LOADING, picture=LOADING)

    next_state, effects = identify.update(identify.PictureRead(1, PNG_DATA_URL), state)

    assert next_state.stage is Stage.PICTURE_READY
    assert effects == []


def test_catalog_arriving_after_picture_starts_classifying():
    state = identify.State(
        stage=Stage.PICTURE_READY, generation=1, catalog=LOADING, picture=Succeed(PNG_DATA_URL),
    )

    next_state, effects = identify.update(
        identify.AviaryMsg(aviary.CatalogLoaded(INDEX)), state,
    )

    assert next_state.stage is Stage.CLASSIFYING
    assert next_state.catalog == Succeed(INDEX)
    assert len(effects) == 1


def test_catalog_failure_stalls_pipeline():
    state = identify.State(
        stage=Stage.PICTURE_READY, generation=1, catalog=LOADING, picture=Succeed(PNG_DATA_URL),
    )

    next_state, effects = identify.update(
        identify.AviaryMsg(aviary.CatalogFailed("down")), state,
    )

    assert next_state.stage is Stage.PICTURE_READY
    assert next_state.catalog == Failure("down")
    assert _run_notifications(effects) == [("error", "Breed catalog unavailable: down")]


def test_duplicate_catalog_load_is_noop():
    state = _ready_state()
    next_state, effects = identify.update(
        identify.AviaryMsg(aviary.CatalogLoaded(INDEX)), state,
    )
    assert next_state is state
    assert effects == []


def test_stale_completions_are_ignored():
    state = _ready_state(stage=Stage.CLASSIFYING, generation=2, results=LOADING)
    stale_actions = [
        identify.PictureRead(1, PNG_DATA_URL),
        identify.PictureFailed(1, "old"),
        identify.ResultsFound(1, RESULTS),
        identify.ClassificationFailed(1, "old"),
    ]
    for action in stale_actions:
        next_state, effects = identify.update(action, state)
        assert next_state is state
        assert effects == []


def test_results_found():
    state = _ready_state(stage=Stage.CLASSIFYING, generation=1, results=LOADING)

    next_state, effects = identify.update(identify.ResultsFound(1, RESULTS), state)

    assert next_state.stage is Stage.RESULTS_READY
    assert next_state.results == Succeed(RESULTS)
    assert next_state.finished
    assert _run_notifications(effects) == [("success", "Looks like a pug (80%)")]


def test_classification_failed_sets_failure_and_notifies():
    state = _ready_state(stage=Stage.CLASSIFYING, generation=1, results=LOADING)

    next_state, effects = identify.update(identify.ClassificationFailed(1, "No match"), state)

    assert next_state.stage is Stage.CLASSIFICATION_FAILED
    assert next_state.results == Failure("No match")
    assert _run_notifications(effects) == [("error", "No match")]


def test_classification_failure_uses_failure_severity():
    state = _ready_state(stage=Stage.CLASSIFYING, generation=1, results=LOADING)

    _, effects = identify.update(
        identify.ClassificationFailed(1, "The classifier found nothing on the picture", Severity.WARNING),
        state,
    )

    assert _run_notifications(effects) == [
        ("warning", "The classifier found nothing on the picture"),
    ]


def test_picture_failed_sets_failure_and_notifies():
    state = _ready_state(stage=Stage.PICTURE_LOADING, generation=1, picture=LOADING)

    next_state, effects = identify.update(identify.PictureFailed(1, "Picture could not be read"), state)

    assert next_state.stage is Stage.PICTURE_FAILED
    assert next_state.picture == Failure("Picture could not be read")
    assert _run_notifications(effects) == [("error", "Picture could not be read")]


def test_reset_returns_to_idle_and_invalidates_in_flight_work():
    state = _ready_state(stage=Stage.CLASSIFYING, generation=5, picture=Succeed(PNG_DATA_URL), results=LOADING)

    next_state, _ = identify.update(identify.Reset(), state)

    assert next_state.stage is Stage.IDLE
    assert next_state.generation == 6
    assert next_state.picture is NOT_ASKED
    late, _ = identify.update(identify.ResultsFound(5, RESULTS), next_state)
    assert late is next_state


def test_reset_when_idle_is_noop():
    state = _ready_state()
    next_state, effects = identify.update(identify.Reset(), state)
    assert next_state is state
    assert effects == []


# --- Program runs ---------------------------------------------------------------

def _program(env):
    notifier = RecordingNotifier()
    program = Program(identify.init(), identify.update, EffectContext(notifier=notifier, env=env))
    return program, notifier


async def test_end_to_end_results_ready():
    env, transport = fake_environment(vision=FakeVision([
        Classification("unknown thing", 0.99),
        Classification("Pug", 0.5),
    ]))
    program, notifier = _program(env)
    stages = []
    program.subscribe(lambda: stages.append(program.state.stage))

    program.dispatch(identify.PictureSubmitted(Path("dog.png")))
    await program.wait_idle()

    state = program.state
    assert state.stage is Stage.RESULTS_READY
    assert state.results.value.probe == Probe(0.5, "pug", None)
    assert state.results.value.images == (
        "https://images.test/pug/1.jpg", "https://images.test/pug/2.jpg",
    )
    assert transport.requested == ["breeds/list/all", "breed/pug/images"]
    assert stages[0] is Stage.PICTURE_LOADING
    assert stages[-1] is Stage.RESULTS_READY
    assert Stage.CLASSIFYING in stages
    assert notifier.notifications == [("success", "Looks like a pug (50%)")]


async def test_end_to_end_no_match():
    env, _ = fake_environment(vision=FakeVision([Classification("teapot", 0.9)]))
    program, notifier = _program(env)

    program.dispatch(identify.PictureSubmitted(Path("teapot.png")))
    await program.wait_idle()

    assert program.state.stage is Stage.CLASSIFICATION_FAILED
    assert program.state.results == Failure("No known breed matches the picture")
    assert notifier.notifications == [("warning", "No known breed matches the picture")]


async def test_end_to_end_unreadable_picture():
    env, transport = fake_environment(files=FakeFiles(error=ReadError(ReadError.FAILED, "No such file")))
    program, _ = _program(env)

    program.dispatch(identify.PictureSubmitted(Path("missing.png")))
    await program.wait_idle()

    assert program.state.stage is Stage.PICTURE_FAILED
    assert program.state.picture == Failure("Picture could not be read: No such file")
    assert env.vision.calls == []


async def test_end_to_end_catalog_failure_stalls():
    env, _ = fake_environment({"breeds/list/all": success(["pug"])})
    program, notifier = _program(env)

    program.dispatch(identify.PictureSubmitted(Path("dog.png")))
    await program.wait_idle()

    assert program.state.stage is Stage.PICTURE_READY
    assert isinstance(program.state.catalog, Failure)
    assert env.vision.calls == []
    assert [severity for severity, _ in notifier.notifications] == ["error"]


async def test_resubmission_discards_superseded_results():
    env, _ = fake_environment()
    program, notifier = _program(env)
    await program.wait_idle()

    program.dispatch(identify.PictureSubmitted(Path("first.png")))
    program.dispatch(identify.PictureSubmitted(Path("second.png")))
    await program.wait_idle()

    assert program.state.generation == 2
    assert program.state.stage is Stage.RESULTS_READY
    # Both reads ran; only the second picture reached the vision model
    assert env.files.calls == [Path("first.png"), Path("second.png")]
    assert len(env.vision.calls) == 1
    assert len(notifier.notifications) == 1


async def test_submission_from_worker_thread_completes():
    env, _ = fake_environment()
    program, notifier = _program(env)

    worker = threading.Thread(
        target=program.dispatch, args=(identify.PictureSubmitted(Path("dog.png")),),
    )
    worker.start()
    worker.join()
    await program.wait_idle()

    assert program.state.stage is Stage.RESULTS_READY
    assert notifier.notifications == [("success", "Looks like a pug (80%)")]
