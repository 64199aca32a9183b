import unittest

from humata.navigation import (
    ACTION_CONTACT,
    ACTION_HOME,
    ACTION_MENU_TOGGLE,
    ACTION_SIDEBAR_TOGGLE,
    MOBILE_BREAKPOINT_PX,
    FloatingNavState,
    ViewportMonitor,
    classify_viewport,
    navigation_config,
)


class TestViewportClassification(unittest.TestCase):
    def test_breakpoint_is_exclusive(self):
        self.assertEqual(classify_viewport(MOBILE_BREAKPOINT_PX - 1), "mobile")
        self.assertEqual(classify_viewport(MOBILE_BREAKPOINT_PX), "desktop")
        self.assertEqual(classify_viewport(1440), "desktop")


class TestFloatingNavState(unittest.TestCase):
    def setUp(self):
        self.routes = []
        self.sidebar_toggles = []
        self.monitor = ViewportMonitor()
        self.state = FloatingNavState(
            self.routes.append,
            on_toggle_sidebar=lambda: self.sidebar_toggles.append(True),
            is_sidebar_open=lambda: bool(self.sidebar_toggles),
            is_on_chat_page=True,
            contact_url="https://wa.me/example",
            location="/chat",
        )

    def test_attach_subscribes_and_detach_unsubscribes(self):
        self.state.attach(self.monitor, 375)

        self.assertTrue(self.state.is_mobile)
        self.assertEqual(self.monitor.subscriber_count, 1)

        self.state.detach()
        self.assertEqual(self.monitor.subscriber_count, 0)
        self.monitor.resize(1200)
        self.assertTrue(self.state.is_mobile)

    def test_resize_reclassifies_viewport(self):
        self.state.attach(self.monitor, 1200)
        self.assertFalse(self.state.is_mobile)

        self.monitor.resize(500)
        self.assertTrue(self.state.is_mobile)

    def test_toggle_flips_expanded_on_mobile(self):
        self.state.attach(self.monitor, 375)

        self.assertFalse(self.state.is_expanded)
        self.state.toggle()
        self.assertTrue(self.state.is_expanded)
        self.state.toggle()
        self.assertFalse(self.state.is_expanded)

    def test_no_expanded_state_on_desktop(self):
        self.state.attach(self.monitor, 1200)

        self.state.toggle()
        self.assertFalse(self.state.is_expanded)

    def test_growing_past_breakpoint_clears_expanded(self):
        self.state.attach(self.monitor, 375)
        self.state.toggle()

        self.monitor.resize(1024)
        self.monitor.resize(375)
        self.assertFalse(self.state.is_expanded)

    def test_navigation_collapses_mobile_menu(self):
        self.state.attach(self.monitor, 375)
        self.state.toggle()

        self.state.navigate_to("/")

        self.assertEqual(self.routes, ["/"])
        self.assertFalse(self.state.is_expanded)
        self.assertEqual(self.state.location, "/")

    def test_sidebar_toggle_calls_host_and_collapses(self):
        self.state.attach(self.monitor, 375)
        self.state.toggle()

        self.state.toggle_sidebar()

        self.assertEqual(self.sidebar_toggles, [True])
        self.assertTrue(self.state.is_sidebar_open)
        self.assertFalse(self.state.is_expanded)

    def test_sidebar_toggle_ignored_on_desktop(self):
        self.state.attach(self.monitor, 1200)

        self.state.toggle_sidebar()

        self.assertEqual(self.sidebar_toggles, [])
        self.assertFalse(self.state.is_sidebar_open)

    def test_sidebar_toggle_ignored_outside_chat_page(self):
        state = FloatingNavState(self.routes.append, on_toggle_sidebar=lambda: self.sidebar_toggles.append(True))
        state.attach(self.monitor, 375)

        state.toggle_sidebar()

        self.assertEqual(self.sidebar_toggles, [])

    def test_sidebar_title_follows_host_state(self):
        host = {"open": False}
        state = FloatingNavState(
            self.routes.append,
            on_toggle_sidebar=lambda: host.update(open=not host["open"]),
            is_sidebar_open=lambda: host["open"],
            is_on_chat_page=True,
        )
        state.attach(self.monitor, 375)
        state.toggle()
        self.assertEqual(state.actions()[2].title, "عرض القائمة")

        host["open"] = True
        self.assertEqual(state.actions()[2].title, "إخفاء القائمة")
        self.assertTrue(state.actions()[2].active)

    def test_mobile_actions_follow_expanded_state(self):
        self.state.attach(self.monitor, 375)
        self.assertEqual([action.id for action in self.state.actions()], [ACTION_MENU_TOGGLE])

        self.state.toggle()
        ids = [action.id for action in self.state.actions()]
        self.assertEqual(ids, [ACTION_HOME, ACTION_CONTACT, ACTION_SIDEBAR_TOGGLE, ACTION_MENU_TOGGLE])

    def test_desktop_actions_never_include_sidebar_toggle(self):
        self.state.attach(self.monitor, 1200)

        actions = self.state.actions()

        self.assertEqual([action.id for action in actions], [ACTION_HOME, ACTION_CONTACT])
        self.assertEqual(actions[1].href, "https://wa.me/example")
        self.assertFalse(actions[0].active)

    def test_sidebar_toggle_hidden_without_callback(self):
        state = FloatingNavState(self.routes.append, is_on_chat_page=True)
        state.attach(self.monitor, 375)
        state.toggle()

        self.assertNotIn(ACTION_SIDEBAR_TOGGLE, [action.id for action in state.actions()])


def test_navigation_config_exposes_breakpoint_and_contact():
    config = navigation_config("https://wa.me/example")

    assert config["mobile_breakpoint_px"] == 768
    assert config["contact_url"] == "https://wa.me/example"
    assert [action["id"] for action in config["actions"]] == [ACTION_HOME, ACTION_CONTACT, ACTION_SIDEBAR_TOGGLE]


if __name__ == "__main__":
    unittest.main()
