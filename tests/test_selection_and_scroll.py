import datetime as dt

from breeding_timeline.plan_models import BreedingPlan
from breeding_timeline.scroll import ScrollSync
from breeding_timeline.selection import PLAN_PALETTE, SelectionState, assign_colors, selectable_plans


def test_first_load_selects_everything():
    state = SelectionState()

    assert state.refresh(["a", "b", "c"]) == ["a", "b", "c"]


def test_cleared_selection_stays_empty_after_refresh():
    state = SelectionState()
    state.refresh(["a", "b"])
    state.clear_all()

    assert state.refresh(["a", "b", "c"]) == []


def test_refresh_prunes_missing_ids_and_never_adds_new_ones():
    state = SelectionState()
    state.refresh(["a", "b", "c"])
    state.toggle("b")

    assert state.refresh(["a", "c", "d"]) == ["a", "c"]


def test_untouched_refresh_is_stable():
    state = SelectionState()
    state.refresh(["a", "b"])

    assert state.refresh(["a", "b"]) == ["a", "b"]
    assert state.touched is False


def test_select_all_keeps_existing_order():
    state = SelectionState()
    state.refresh(["a", "b", "c"])
    state.set_selected(["c", "a", "zzz"])
    state.select_all()

    assert state.selected == ["c", "a", "b"]


def test_group_toggle_and_state():
    state = SelectionState()
    state.refresh(["a", "b", "c"])
    state.clear_all()
    state.toggle("a")

    group = state.group_state(["a", "b"])
    assert (group.checked, group.indeterminate, group.count, group.total) == (False, True, 1, 2)

    state.toggle_group(["a", "b"])
    assert state.group_state(["a", "b"]).checked is True

    state.toggle_group(["a", "b"])
    assert state.selected == []


def test_colors_follow_active_position_and_cycle():
    ids = [f"p{i}" for i in range(len(PLAN_PALETTE) + 1)]
    colors = assign_colors(ids)

    assert colors["p0"] == PLAN_PALETTE[0]
    assert colors[ids[-1]] == PLAN_PALETTE[0]
    assert assign_colors(["b", "a"]) == {"b": PLAN_PALETTE[0], "a": PLAN_PALETTE[1]}


def test_selectable_plans_need_a_cycle_date():
    plans = [
        BreedingPlan(id="a", locked_cycle_start=dt.date(2026, 3, 1)),
        BreedingPlan(id="b"),
        BreedingPlan(id="c", cycle_start_date_actual=dt.date(2026, 2, 27)),
    ]

    assert [p.id for p in selectable_plans(plans)] == ["a", "c"]


def test_locked_scroll_mirrors_the_other_panel():
    applied = []
    sync = ScrollSync(locked=True, on_apply=lambda panel, offset: applied.append((panel, offset)))

    sync.on_scroll("phases", 120.0)

    assert sync.offsets == {"phases": 120.0, "exact": 120.0}
    assert applied == [("exact", 120.0)]


def test_programmatic_writes_do_not_echo_back():
    sync = ScrollSync(locked=True)
    applied = []

    def apply(panel, offset):
        applied.append((panel, offset))
        # A real viewport fires its own scroll event for the write.
        sync.on_scroll(panel, offset)

    sync.on_apply = apply
    sync.on_scroll("exact", 40.0)

    assert applied == [("phases", 40.0)]
    assert sync.offsets == {"phases": 40.0, "exact": 40.0}


def test_unlocked_panels_scroll_independently_until_locked():
    applied = []
    sync = ScrollSync(on_apply=lambda panel, offset: applied.append((panel, offset)))

    sync.on_scroll("phases", 80.0)
    assert sync.offsets == {"phases": 80.0, "exact": 0.0}
    assert applied == []

    sync.set_locked(True)
    assert sync.offsets["exact"] == 80.0
    assert applied == [("exact", 80.0)]
