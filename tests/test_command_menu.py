import asyncio
import unittest

from coursemenu.menu import CommandMenu, MenuStatus

COURSES = ["Computer Systems", "Computer Architecture", "Analysis III: Distribution Theory"]


def _menu(**kwargs) -> CommandMenu:
    kwargs.setdefault("debounce_s", 0.0)
    kwargs.setdefault("policy", "multi")
    kwargs.setdefault("discard_stale", False)
    kwargs.setdefault("min_token_chars", 2)
    kwargs.setdefault("marker", "@")
    return CommandMenu(COURSES, **kwargs)


class TestCommandMenuSuggestions(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.menu = _menu()
        self.menu.open()

    async def test_open_starts_idle_and_empty(self):
        snap = self.menu.snapshot()
        self.assertEqual(snap.status, MenuStatus.IDLE)
        self.assertEqual(snap.input_value, "")
        self.assertEqual(snap.selected, ())
        self.assertEqual(snap.suggestion, "")

    async def test_edit_marks_typing_until_debounce_resolves(self):
        self.menu.edit("ask @comp")
        self.assertTrue(self.menu.typing)
        self.assertEqual(self.menu.suggestion, "")
        self.assertEqual(self.menu.status, MenuStatus.SUGGESTING)

        await self.menu.scheduler.drain()
        self.assertFalse(self.menu.typing)
        self.assertEqual(self.menu.suggestion, "Computer Systems")
        self.assertEqual(self.menu.snapshot().ghost_text, "uter Systems")

    async def test_short_token_gets_no_suggestion(self):
        self.menu.edit("@c")
        await self.menu.scheduler.drain()
        self.assertEqual(self.menu.suggestion, "")
        self.assertFalse(self.menu.typing)

    async def test_no_mention_gets_no_suggestion(self):
        self.menu.edit("what is virtual memory")
        await self.menu.scheduler.drain()
        self.assertEqual(self.menu.suggestion, "")
        self.assertEqual(self.menu.status, MenuStatus.IDLE)

    async def test_accept_truncates_buffer_and_selects(self):
        self.menu.edit("explain paging @comp")
        await self.menu.scheduler.drain()
        before = self.menu.suggestion

        self.assertTrue(self.menu.accept_suggestion())
        self.assertEqual(self.menu.input_value, "explain paging ")
        self.assertNotIn("@comp", self.menu.input_value)
        self.assertEqual(self.menu.selection, (before,))
        self.assertEqual(self.menu.suggestion, "")
        self.assertEqual(self.menu.status, MenuStatus.SELECTED)

    async def test_accept_is_noop_while_pending(self):
        self.menu.edit("@comp")
        self.assertFalse(self.menu.accept_suggestion())
        self.assertEqual(self.menu.selection, ())
        self.assertEqual(self.menu.input_value, "@comp")
        await self.menu.scheduler.drain()

    async def test_accept_is_noop_without_suggestion(self):
        self.menu.edit("@zzzz")
        await self.menu.scheduler.drain()
        self.assertFalse(self.menu.accept_suggestion())
        self.assertEqual(self.menu.input_value, "@zzzz")

    async def test_reject_keeps_buffer_and_selection(self):
        self.menu.edit("@arch")
        await self.menu.scheduler.drain()
        self.assertEqual(self.menu.suggestion, "Computer Architecture")
        self.menu.reject_suggestion()
        self.assertEqual(self.menu.suggestion, "")
        self.assertEqual(self.menu.input_value, "@arch")
        self.assertEqual(self.menu.selection, ())

    async def test_multi_policy_allows_further_mentions(self):
        self.menu.edit("@comp")
        await self.menu.scheduler.drain()
        self.menu.accept_suggestion()
        self.menu.edit("@arch")
        await self.menu.scheduler.drain()
        self.menu.accept_suggestion()
        self.assertEqual(self.menu.selection, ("Computer Systems", "Computer Architecture"))

    async def test_result_is_dropped_after_close(self):
        self.menu.edit("@comp")
        self.menu.close()
        await self.menu.scheduler.drain()
        self.assertFalse(self.menu.is_open)
        self.assertEqual(self.menu.suggestion, "")
        self.assertEqual(self.menu.status, MenuStatus.CLOSED)

    async def test_result_is_dropped_after_reopen(self):
        self.menu.edit("@comp")
        self.menu.close()
        self.menu.open()
        await self.menu.scheduler.drain()
        self.assertEqual(self.menu.suggestion, "")
        self.assertFalse(self.menu.typing)

    async def test_confirmation_since_scheduling_discards_result(self):
        self.menu.edit("@comp")
        self.menu.select_entity("Analysis III: Distribution Theory")
        self.menu.edit("now @a")
        self.menu.edit("now @arch")
        await self.menu.scheduler.drain()
        # The computation scheduled before the confirmation did not apply; the later ones did.
        self.assertEqual(self.menu.selection, ("Analysis III: Distribution Theory",))
        self.assertEqual(self.menu.suggestion, "Computer Architecture")

    async def test_select_entity_drops_unconfirmed_mention(self):
        self.menu.edit("compare @archi")
        self.menu.select_entity("Computer Architecture")
        self.assertEqual(self.menu.input_value, "compare ")
        self.assertEqual(self.menu.selection, ("Computer Architecture",))
        await self.menu.scheduler.drain()
        self.assertEqual(self.menu.suggestion, "")

    async def test_edit_while_closed_is_ignored(self):
        self.menu.close()
        self.menu.edit("@comp")
        self.assertEqual(self.menu.input_value, "")
        self.assertEqual(self.menu.scheduler.pending, 0)


class TestCommandMenuDebounceRace(unittest.IsolatedAsyncioTestCase):
    async def test_older_computation_resolves_before_newer_edit_settles(self):
        menu = _menu(debounce_s=0.1)
        menu.open()
        menu.edit("@comp")
        await asyncio.sleep(0.05)
        menu.edit("@arch")
        await asyncio.sleep(0.08)
        # The first computation fired and read the live buffer while the second is still pending.
        self.assertEqual(menu.scheduler.pending, 1)
        self.assertFalse(menu.typing)
        self.assertEqual(menu.suggestion, "Computer Architecture")
        await menu.scheduler.drain()
        self.assertEqual(menu.suggestion, "Computer Architecture")

    async def test_discard_stale_waits_for_newest_edit(self):
        menu = _menu(debounce_s=0.1, discard_stale=True)
        menu.open()
        menu.edit("@comp")
        await asyncio.sleep(0.05)
        menu.edit("@arch")
        await asyncio.sleep(0.08)
        self.assertTrue(menu.typing)
        self.assertEqual(menu.suggestion, "")
        await menu.scheduler.drain()
        self.assertFalse(menu.typing)
        self.assertEqual(menu.suggestion, "Computer Architecture")


class TestCommandMenuWithoutEventLoop(unittest.TestCase):
    def test_failed_edit_leaves_state_untouched(self):
        menu = _menu()
        menu.open()
        generation = menu.scheduler.generation
        with self.assertRaises(RuntimeError):
            menu.edit("@comp")
        self.assertEqual(menu.input_value, "")
        self.assertFalse(menu.typing)
        self.assertEqual(menu.suggestion, "")
        self.assertEqual(menu.scheduler.generation, generation)
        self.assertEqual(menu.scheduler.pending, 0)


class TestCommandMenuSelection(unittest.IsolatedAsyncioTestCase):
    async def test_remove_most_recent_on_empty_buffer(self):
        menu = _menu()
        menu.open()
        for name in ("A", "B", "C"):
            menu.select_entity(name)
        self.assertEqual(menu.remove_most_recent(), "C")
        self.assertEqual(menu.selection, ("A", "B"))

    async def test_remove_most_recent_requires_empty_buffer(self):
        menu = _menu()
        menu.open()
        menu.select_entity("A")
        menu.edit("question")
        self.assertIsNone(menu.remove_most_recent())
        self.assertEqual(menu.selection, ("A",))
        await menu.scheduler.drain()

    async def test_remove_entity_clears_suggestion(self):
        menu = _menu()
        menu.open()
        menu.select_entity("Computer Systems")
        menu.edit("@arch")
        await menu.scheduler.drain()
        self.assertTrue(menu.remove_entity("Computer Systems"))
        self.assertEqual(menu.selection, ())
        self.assertEqual(menu.suggestion, "")
        self.assertFalse(menu.remove_entity("Computer Systems"))

    async def test_single_policy_replaces_and_stops_suggesting(self):
        menu = _menu(policy="single")
        menu.open()
        menu.edit("@comp")
        await menu.scheduler.drain()
        menu.accept_suggestion()
        menu.edit("@arch")
        await menu.scheduler.drain()
        self.assertEqual(menu.suggestion, "")
        self.assertEqual(menu.status, MenuStatus.SELECTED)

        menu.select_entity("Computer Architecture")
        self.assertEqual(menu.selection, ("Computer Architecture",))
        self.assertEqual(menu.input_value, "")
        self.assertEqual(menu.remove_most_recent(), "Computer Architecture")
        self.assertEqual(menu.selection, ())
        await menu.scheduler.drain()

    async def test_close_clears_session_state(self):
        menu = _menu()
        menu.open()
        menu.select_entity("A")
        menu.edit("hello")
        menu.set_loading_response(True)
        menu.set_loading_stage("downloading")
        menu.close()
        snap = menu.snapshot()
        self.assertEqual(snap.selected, ())
        self.assertEqual(snap.input_value, "")
        self.assertFalse(snap.is_loading_response)
        self.assertEqual(snap.loading_stage, "")
        await menu.scheduler.drain()


class TestCommandMenuActions(unittest.TestCase):
    def test_toggle(self):
        menu = _menu()
        menu.toggle()
        self.assertTrue(menu.is_open)
        menu.toggle()
        self.assertFalse(menu.is_open)

    def test_dispatch_rejects_unknown_actions(self):
        menu = _menu()
        with self.assertRaises(ValueError):
            menu.dispatch("_confirm", "A")

    def test_dispatch_runs_named_action(self):
        menu = _menu()
        menu.dispatch("open")
        menu.dispatch("select_entity", "Computer Systems")
        self.assertEqual(menu.selection, ("Computer Systems",))

    def test_loading_off_clears_stage(self):
        menu = _menu()
        menu.open()
        menu.set_loading_response(True)
        menu.set_loading_stage("converting")
        self.assertEqual(menu.loading_stage, "converting")
        menu.set_loading_response(False)
        self.assertEqual(menu.loading_stage, "")

    def test_open_resets_previous_session(self):
        menu = _menu()
        menu.open()
        menu.select_entity("A")
        session = menu.session
        menu.open()
        self.assertEqual(menu.selection, ())
        self.assertGreater(menu.session, session)


if __name__ == "__main__":
    unittest.main()
