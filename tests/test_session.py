from __future__ import annotations

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from poster_studio.config import DesignerConfig
from poster_studio.schemas import Feature, PosterState, Shot
from poster_studio.services.designer import (
    SUCCESS_MESSAGE,
    UNRECOGNIZED_SHAPE_MESSAGE,
    BusyError,
    DesignerResponse,
    MissingEndpointError,
    NotConfirmedError,
    TransportFailureError,
)
from poster_studio.services.prompt import CONFIRMED_LINE, UNCONFIRMED_LINE
from poster_studio.services.session import DIRTY_NOTICE, EditorSession, ItemNotFoundError
from poster_studio.services.signature import build_signature

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
ENDPOINT = "https://designer.example.com/v1"


def make_state() -> PosterState:
    return PosterState(
        brand_name="ACME",
        agent_name="East Channel",
        headline="Best Widget",
        tagline="Built to last",
        product_name="Widget 3000",
        series_description="Front / Side / Detail",
        features=[Feature(id="f1", text="A"), Feature(id="f2", text="B"), Feature(id="f3", text="C")],
        shots=[Shot(id="s1", label="Front"), Shot(id="s2", label="Side"), Shot(id="s3", label="Detail")],
    )


def make_session(client=None, **config) -> EditorSession:
    client = client or MagicMock()
    return EditorSession(
        make_state(),
        designer_config=DesignerConfig(api_url=config.get("api_url", ENDPOINT), api_key=config.get("api_key")),
        client=client,
        clock=lambda: NOW,
    )


def success_client(image_src="https://cdn.example.com/poster.png"):
    client = MagicMock()
    client.submit.return_value = DesignerResponse(image_src=image_src, data={"url": image_src})
    return client


def test_new_session_needs_review() -> None:
    session = make_session()
    view = session.confirmation_view()

    assert view.status == "needs-review"
    assert view.is_confirmed is False
    assert view.can_confirm is True
    assert view.confirm_label == "确认素材无误"
    assert view.signature == session.signature


def test_confirm_then_edit_marks_dirty_without_extra_calls() -> None:
    session = make_session()
    session.confirm()
    assert session.is_confirmed
    assert not session.can_confirm
    assert session.confirmation_view().confirmed_at == NOW

    session.update({"headline": "Even Better Widget"})

    view = session.confirmation_view()
    assert view.status == "dirty"
    assert view.is_confirmed is False
    assert view.can_confirm is True
    assert view.confirmed_at == NOW


def test_reconfirm_is_a_no_op() -> None:
    session = make_session()
    session.confirm()
    signature = session.machine.record.confirmed_signature

    view = session.confirm()

    assert view.status == "confirmed"
    assert session.machine.record.confirmed_signature == signature
    assert view.can_confirm is False


def test_noop_edit_keeps_confirmation() -> None:
    session = make_session()
    session.confirm()

    session.update({"headline": "Best Widget"})

    assert session.is_confirmed


def test_prompt_tracks_confirmation() -> None:
    session = make_session()
    assert session.prompt.split("\n")[1] == UNCONFIRMED_LINE
    session.confirm()
    assert session.prompt.split("\n")[1] == CONFIRMED_LINE


def test_submit_before_confirm_reports_not_confirmed() -> None:
    client = success_client()
    session = make_session(client)

    view = session.submit()

    assert view.status == "error"
    assert view.message == NotConfirmedError.message
    assert view.result is None
    client.submit.assert_not_called()
    with pytest.raises(NotConfirmedError):
        session.payload()


def test_submit_after_confirm_sends_payload() -> None:
    client = success_client()
    session = make_session(client, api_key="configured-key")
    session.confirm()

    view = session.submit()

    assert view.status == "success"
    assert view.message == SUCCESS_MESSAGE
    assert view.result.image_src == "https://cdn.example.com/poster.png"
    endpoint, api_key, payload = client.submit.call_args.args
    assert endpoint == ENDPOINT
    assert api_key == "configured-key"
    assert payload["features"] == [
        {"id": "f1", "order": 1, "text": "A"},
        {"id": "f2", "order": 2, "text": "B"},
        {"id": "f3", "order": 3, "text": "C"},
    ]
    assert payload["assets"] == {}
    assert payload["prompt"] == session.prompt
    assert not session.busy


def test_submit_overrides_endpoint_and_key() -> None:
    client = success_client()
    session = make_session(client)
    session.confirm()

    session.submit(endpoint="https://other.example.com/design", api_key="k2")

    endpoint, api_key, _payload = client.submit.call_args.args
    assert endpoint == "https://other.example.com/design"
    assert api_key == "k2"


def test_submit_with_empty_endpoint_reports_missing_endpoint() -> None:
    client = success_client()
    session = make_session(client)
    session.confirm()

    view = session.submit(endpoint="   ")

    assert view.status == "error"
    assert view.message == MissingEndpointError.message
    client.submit.assert_not_called()


def test_transport_failure_is_folded_into_status() -> None:
    client = MagicMock()
    client.submit.side_effect = TransportFailureError("boom", status_code=500)
    session = make_session(client)
    session.confirm()

    view = session.submit()

    assert view.status == "error"
    assert "500" in view.message
    assert view.result is None
    assert not session.busy
    assert session.state.headline == "Best Widget"


def test_unrecognized_shape_is_degraded_success() -> None:
    client = MagicMock()
    client.submit.return_value = DesignerResponse(image_src="", data={"status": "queued"})
    session = make_session(client)
    session.confirm()

    view = session.submit()

    assert view.status == "success"
    assert view.message == UNRECOGNIZED_SHAPE_MESSAGE
    assert view.result.data == {"status": "queued"}


def test_dirty_transition_clears_result_once() -> None:
    session = make_session(success_client())
    session.confirm()
    session.submit()
    assert session.designer_view().result is not None

    session.update({"headline": "Changed"})
    view = session.designer_view()
    assert view.status == "idle"
    assert view.message == DIRTY_NOTICE
    assert view.result is None

    session.reset_designer()
    session.update({"headline": "Changed again"})
    assert session.designer_view().message == ""


def test_submission_rejected_while_in_flight() -> None:
    started = threading.Event()
    release = threading.Event()
    client = MagicMock()

    def slow_submit(endpoint, api_key, payload):
        started.set()
        release.wait(timeout=5)
        return DesignerResponse(image_src="https://cdn.example.com/p.png")

    client.submit.side_effect = slow_submit
    session = make_session(client)
    session.confirm()

    worker = threading.Thread(target=session.submit)
    worker.start()
    assert started.wait(timeout=5)
    try:
        assert session.busy
        assert session.designer_view().status == "loading"
        with pytest.raises(BusyError):
            session.submit()
    finally:
        release.set()
        worker.join(timeout=5)

    assert not session.busy
    assert session.designer_view().status == "success"
    assert client.submit.call_count == 1


def test_edit_during_flight_clears_result_after_completion() -> None:
    started = threading.Event()
    release = threading.Event()
    client = MagicMock()

    def slow_submit(endpoint, api_key, payload):
        started.set()
        release.wait(timeout=5)
        return DesignerResponse(image_src="https://cdn.example.com/p.png")

    client.submit.side_effect = slow_submit
    session = make_session(client)
    session.confirm()

    worker = threading.Thread(target=session.submit)
    worker.start()
    assert started.wait(timeout=5)
    session.update({"tagline": "New tagline"})
    assert session.designer_view().status == "loading"
    release.set()
    worker.join(timeout=5)

    view = session.designer_view()
    assert session.confirmation_view().status == "dirty"
    assert view.status == "idle"
    assert view.message == DIRTY_NOTICE
    assert view.result is None


def test_feature_collection_bounds() -> None:
    session = make_session()

    added = session.add_feature()
    assert added is not None
    assert len(session.state.features) == 4
    assert session.add_feature() is None

    assert session.remove_feature(added.id) is True
    assert session.remove_feature("f1") is False
    assert [item.id for item in session.state.features] == ["f1", "f2", "f3"]

    with pytest.raises(ItemNotFoundError):
        session.remove_feature("missing")


def test_shot_collection_bounds_and_edits() -> None:
    session = make_session()
    session.confirm()

    shot = session.add_shot()
    assert shot is not None
    assert session.confirmation_view().status == "dirty"
    assert session.add_shot() is None

    session.update_shot(shot.id, {"label": "Back", "image": "data:image/png;base64,eHg="})
    assert session.state.shots[-1].image == "data:image/png;base64,eHg="
    session.update_shot(shot.id, {"image": ""})
    assert session.state.shots[-1].image is None
    assert session.state.shots[-1].label == "Back"

    assert session.remove_shot(shot.id) is True
    assert session.remove_shot("s1") is False


def test_null_shot_label_keeps_form_editable() -> None:
    session = make_session()

    shot = session.update_shot("s1", {"label": None, "image": "data:image/png;base64,eHg="})

    assert shot.label == "Front"
    assert shot.image == "data:image/png;base64,eHg="
    edited = session.update({"headline": "New headline"})
    assert edited.headline == "New headline"
    assert edited.shots[0].label == "Front"


def test_submission_waits_for_edit_in_progress(monkeypatch) -> None:
    client = success_client()
    session = make_session(client)
    session.confirm()

    entered = threading.Event()
    release = threading.Event()
    real_signature = build_signature

    def slow_signature(state):
        entered.set()
        release.wait(timeout=5)
        return real_signature(state)

    monkeypatch.setattr("poster_studio.services.session.build_signature", slow_signature)

    editor = threading.Thread(target=session.update, args=({"headline": "Unconfirmed edit"},))
    editor.start()
    assert entered.wait(timeout=5)

    views = []
    submitter = threading.Thread(target=lambda: views.append(session.submit()))
    submitter.start()
    submitter.join(timeout=0.2)
    assert submitter.is_alive()

    release.set()
    editor.join(timeout=5)
    submitter.join(timeout=5)

    client.submit.assert_not_called()
    assert views[0].status == "error"
    assert views[0].message == NotConfirmedError.message
    assert session.confirmation_view().status == "dirty"
    assert not session.busy


def test_update_feature_text() -> None:
    session = make_session()
    session.update_feature("f2", "Quiet motor")
    assert session.state.features[1].text == "Quiet motor"
    assert session.state.features[1].id == "f2"


def test_update_ignores_collection_keys_and_clears_images() -> None:
    session = make_session()
    session.update({"brand_logo": "data:image/png;base64,eHg=", "features": []})
    assert session.state.brand_logo == "data:image/png;base64,eHg="
    assert len(session.state.features) == 3

    session.update({"brand_logo": ""})
    assert session.state.brand_logo is None


def test_state_is_returned_as_a_copy() -> None:
    session = make_session()
    snapshot = session.state
    snapshot.features[0].text = "mutated"
    assert session.state.features[0].text == "A"
