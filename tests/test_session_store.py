from conftest import run

from services.conversation.session_store import SessionStore


def test_get_creates_lazily_and_returns_same_session(store):
    assert "u1" not in store
    session = store.get("u1")
    assert "u1" in store
    assert store.get("u1") is session
    assert session.draft_order.service.name is None
    assert store.count() == 1


def test_service_update_backfills_catalog_fields(store):
    session = run(store.update("u1", {"draft_order": {"service": {"name": "tela pvc 13 OZ"}}}))
    draft = session.draft_order
    assert draft.service.name == "Tela PVC 13 oz"
    assert draft.service.category == "Telas PVC"
    assert draft.service.type == "Gran formato"
    assert draft.available_widths == [0.9, 1.2, 1.5, 3.2]
    assert draft.available_finishes["sellado"] is True
    assert draft.file_validation_criteria == "Mínimo 72 dpi a tamaño real"


def test_unknown_service_leaves_draft_untouched(store):
    run(store.update("u1", {"draft_order": {"service": {"name": "Adhesivo Vinilo"}}}))
    session = run(store.update("u1", {"draft_order": {"service": {"name": "Pendón roller"}}}))
    assert session.draft_order.service.name == "Adhesivo Vinilo"
    assert session.draft_order.service.category == "Adhesivos"


def test_finishes_not_offered_are_dropped_on_service_change(store):
    run(store.update("u1", {"draft_order": {"service": {"name": "Tela PVC 13 oz"}}}))
    run(store.update("u1", {"draft_order": {"finishes": {"sellado": True, "ojetillos": True, "bolsillo": True}}}))
    session = store.get("u1")
    assert session.draft_order.finishes == {"sellado": True, "ojetillos": True}

    run(store.update("u1", {"draft_order": {"service": {"name": "Adhesivo Vinilo"}}}))
    assert session.draft_order.finishes == {}


def test_derived_fields_cannot_be_patched(store):
    session = run(store.update("u1", {"draft_order": {"available_widths": [9.9], "computed_area": 42}}))
    assert session.draft_order.available_widths == []
    assert session.draft_order.computed_area is None


def test_measures_update_computes_area(store):
    session = run(store.update("u1", {"draft_order": {"measures": {"width": 1.5}}}))
    assert session.draft_order.computed_area is None
    run(store.update("u1", {"draft_order": {"measures": {"height": 2}}}))
    assert session.draft_order.measures.width == 1.5
    assert session.draft_order.computed_area == 3.0


def test_reset_can_preserve_onboarding(store):
    run(store.update("u1", {"initial_messages_sent": True, "has_interacted": True, "draft_order": {"quantity": 4}}))
    session = store.reset("u1", preserve_onboarding=True)
    assert session.initial_messages_sent and session.has_interacted
    assert session.draft_order.quantity is None

    session = store.reset("u1")
    assert not session.initial_messages_sent


def test_history_is_bounded_by_word_budget(catalog):
    store = SessionStore(catalog, history_word_limit=10)
    store.append_history("u1", "user", "uno dos tres cuatro")
    store.append_history("u1", "assistant", "cinco seis siete ocho")
    store.append_history("u1", "user", "nueve diez once doce")
    session = store.get("u1")
    assert [m.content for m in session.history] == ["cinco seis siete ocho", "nueve diez once doce"]
    assert session.history_word_count() <= 10


def test_single_oversized_message_keeps_its_tail(catalog):
    store = SessionStore(catalog, history_word_limit=3)
    store.append_history("u1", "user", "a b c d e")
    assert store.history_for_prompt("u1") == [{"role": "user", "content": "c d e"}]


def test_prune_idle_respects_cutoff_and_keep(store):
    store.get("old").last_interaction = 100.0
    store.get("busy").last_interaction = 100.0
    store.get("fresh").last_interaction = 5_000.0
    removed = store.prune_idle(1_000, now=5_500.0, keep=lambda user_id: user_id == "busy")
    assert removed == ["old"]
    assert "busy" in store and "fresh" in store and "old" not in store


def test_snapshot_and_restore(store):
    run(store.update("u1", {"draft_order": {"quantity": 7}}))
    snapshot = store.snapshot("u1")
    run(store.update("u1", {"draft_order": {"quantity": 99}}))
    store.restore("u1", snapshot)
    assert store.get("u1").draft_order.quantity == 7

    store.restore("ghost", store.snapshot("ghost"))
    assert "ghost" not in store


def test_discard_forgets_session(store):
    run(store.update("u1", {"draft_order": {"quantity": 3}}))
    assert store.discard("u1")
    assert not store.discard("u1")
    assert store.get("u1").draft_order.quantity is None
