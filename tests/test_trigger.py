import pytest

from meme import CanonicalImage, MemeRenderer, RenderTrigger


class SpyRenderer(MemeRenderer):
    """Records every render call."""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.on_render = None

    def render(self, image, top_text="", bottom_text=""):
        self.calls.append((image, top_text, bottom_text))
        if self.on_render is not None:
            self.on_render()
        return super().render(image, top_text, bottom_text)


@pytest.fixture
def spy():
    return SpyRenderer()


@pytest.fixture
def trigger(spy):
    return RenderTrigger(spy)


def test_renders_on_notify(trigger, spy, make_image):
    image = make_image(1600, 800)
    trigger.notify(image, "hello", "")

    assert len(spy.calls) == 1
    assert trigger.surface.size == (800, 400)
    assert trigger.render_count == 1


def test_identical_inputs_render_once(trigger, spy, make_image):
    image = make_image()
    trigger(image, "top", "bottom")
    trigger(image, "top", "bottom")
    trigger(image, "top", "bottom")

    assert len(spy.calls) == 1


def test_each_change_renders(trigger, spy, make_image):
    image = make_image()
    trigger(image, "", "")
    trigger(image, "t", "")
    trigger(image, "to", "")
    trigger(image, "top", "")

    assert [call[1] for call in spy.calls] == ["", "t", "to", "top"]


def test_no_image_clears_surface(trigger, spy, make_image):
    trigger(make_image(), "a", "b")
    assert trigger.surface is not None

    trigger(None, "", "")

    assert trigger.surface is None
    assert len(spy.calls) == 1


def test_updates_during_render_are_coalesced(trigger, spy, make_image):
    image = make_image()
    updates = iter([("x", ""), ("xy", ""), ("xyz", "")])

    def type_while_rendering():
        nxt = next(updates, None)
        if nxt is not None and len(spy.calls) == 1:
            # Three edits land while the first render runs
            for top, bottom in [nxt, *updates]:
                trigger(image, top, bottom)

    spy.on_render = type_while_rendering
    trigger(image, "", "")

    assert [call[1] for call in spy.calls] == ["", "xyz"]
    assert trigger.render_count == 2
    assert not trigger.is_rendering


def test_undecodable_image_keeps_previous_surface(trigger, make_image):
    trigger(make_image(), "ok", "")
    previous = trigger.surface

    trigger(CanonicalImage(payload=b"garbage", media_type="image/png"), "ok", "")

    assert trigger.surface is previous
    assert trigger.skipped_count == 1
    assert trigger.render_count == 1


def test_subscribers_receive_surfaces(trigger, make_image):
    received = []
    trigger.subscribe(received.append)

    trigger(make_image(), "one", "")
    trigger(make_image(), "two", "")

    assert len(received) == 2
    assert received[-1] is trigger.surface
