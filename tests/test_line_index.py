import unittest

from pydantic import ValidationError

from mailview.line_index import PLACEHOLDER_RE, build_render_result, collapse_blank_lines, find_url
from mailview.models import ExtractedImage, RenderResult
from mailview.terminal import strip_ansi


def image(number, alt):
    return ExtractedImage(
        id=f"img-{number}",
        number=number,
        src=f"https://cdn.example.com/{number}.png",
        alt=alt,
        placeholder=f"⬚ [IMG:{number}] {alt}",
    )


LOGO = image(1, "Company logo")


class TestCollapseBlankLines(unittest.TestCase):
    def test_collapses_and_trims(self):
        lines = ["", "  ", "a", "", "", "\x1b[0m", "b", "", ""]
        self.assertEqual(collapse_blank_lines(lines), ["a", "", "b"])


class TestDeinterleave(unittest.TestCase):
    def test_splits_prose_around_placeholder(self):
        result = build_render_result("Hello ⬚ [IMG:1] Company logo and more", [LOGO])
        self.assertEqual(result.lines, ["Hello", "⬚ [IMG:1] Company logo", "and more"])
        self.assertEqual(result.image_line_map, {1: "img-1"})

    def test_label_wrapped_onto_next_line(self):
        result = build_render_result("Look ⬚ [IMG:1] Company\nlogo then text", [LOGO])
        self.assertEqual(result.lines, ["Look", "⬚ [IMG:1] Company logo", "then text"])

    def test_bare_token_with_label_on_next_line(self):
        result = build_render_result("⬚ [IMG:1]\nCompany logo\n\nNext", [LOGO])
        self.assertEqual(result.lines, ["⬚ [IMG:1] Company logo", "", "Next"])
        self.assertEqual(result.image_line_map, {0: "img-1"})

    def test_two_placeholders_on_one_line(self):
        images = [image(1, "A"), image(2, "B")]
        result = build_render_result("⬚ [IMG:1] A ⬚ [IMG:2] B", images)
        self.assertEqual(result.lines, ["⬚ [IMG:1] A", "⬚ [IMG:2] B"])
        self.assertEqual(result.image_line_map, {0: "img-1", 1: "img-2"})

    def test_unknown_image_number_is_not_indexed(self):
        result = build_render_result("⬚ [IMG:9] ghost", [LOGO])
        self.assertEqual(result.image_line_map, {})

    def test_split_prose_keeps_styling(self):
        result = build_render_result("\x1b[1mBold ⬚ [IMG:1] Company logo tail\x1b[0m", [LOGO])
        self.assertEqual(result.lines, ["\x1b[1mBold\x1b[0m", "⬚ [IMG:1] Company logo", "\x1b[1mtail\x1b[0m"])

    def test_consumed_label_keeps_styling(self):
        result = build_render_result("⬚ [IMG:1] Company\n\x1b[3mlogo then text\x1b[0m", [LOGO])
        self.assertEqual(result.lines, ["⬚ [IMG:1] Company logo", "\x1b[3mthen text\x1b[0m"])

    def test_image_line_purity(self):
        images = [image(1, "Company logo"), image(2, "Hero banner")]
        samples = [
            "Intro ⬚ [IMG:1] Company logo ⬚ [IMG:2] Hero banner outro",
            "\x1b[1mBold ⬚ [IMG:1] Company\x1b[0m\nlogo ⬚ [IMG:2]\nHero banner tail",
            "⬚ [IMG:2] Hero\nbanner\n\n\n\n⬚ [IMG:1] Company logo",
        ]
        for text in samples:
            result = build_render_result(text, images)
            for line in result.lines:
                markers = PLACEHOLDER_RE.findall(strip_ansi(line))
                self.assertLessEqual(len(markers), 1, line)
                if markers:
                    self.assertIn(line, [img.placeholder for img in images])


class TestIndex(unittest.TestCase):
    def test_links_are_indexed_in_order(self):
        text = "See https://example.com/a.\n\nplain\n\x1b[4mhttps://example.com/b\x1b[0m (docs)"
        result = build_render_result(text)
        self.assertEqual([link.href for link in result.links], ["https://example.com/a", "https://example.com/b"])
        self.assertEqual([link.id for link in result.links], ["link-1", "link-2"])
        self.assertEqual(result.link_line_map, {0: "link-1", 3: "link-2"})
        self.assertEqual(result.links[1].line_index, 3)

    def test_only_first_url_per_line(self):
        result = build_render_result("https://a.example.com and https://b.example.com")
        self.assertEqual(len(result.links), 1)
        self.assertEqual(result.links[0].href, "https://a.example.com")

    def test_folded_url_is_joined_when_width_is_known(self):
        text = "Go https://example.com/\naaaaaaaaaaaaaaaaaaaaaaa\nbbb next"
        folded = build_render_result(text, width=23)
        self.assertEqual(folded.links[0].href, "https://example.com/aaaaaaaaaaaaaaaaaaaaaaabbb")
        self.assertEqual(folded.link_line_map, {0: "link-1"})

        self.assertEqual(build_render_result(text).links[0].href, "https://example.com/")

    def test_wrapped_words_after_url_are_not_joined(self):
        result = build_render_result("See https://example.com\nand more", width=40)
        self.assertEqual(result.links[0].href, "https://example.com")

    def test_url_stops_at_table_borders(self):
        self.assertEqual(find_url("│ https://example.com/x │"), "https://example.com/x")
        self.assertEqual(find_url("Read (https://example.com/y)"), "https://example.com/y")
        self.assertIsNone(find_url("no links here"))

    def test_indices_are_valid(self):
        text = "\n\n\nTop https://example.com\n⬚ [IMG:1] Company logo\n\n\n\n"
        result = build_render_result(text, [LOGO])
        for index, image_id in result.image_line_map.items():
            self.assertLess(index, len(result.lines))
            self.assertIn(image_id, [img.id for img in result.images])
        for index, link_id in result.link_line_map.items():
            self.assertLess(index, len(result.lines))
            self.assertIn(link_id, [link.id for link in result.links])
        self.assertNotEqual(result.lines[0], "")
        self.assertNotEqual(result.lines[-1], "")

    def test_empty_text(self):
        result = build_render_result("")
        self.assertEqual(result.lines, [])
        self.assertEqual(result.links, [])


class TestRenderResultNavigation(unittest.TestCase):
    def setUp(self):
        text = "a https://x.example.com\n⬚ [IMG:1] Company logo\nb\n⬚ [IMG:2] B\nc https://y.example.com"
        self.result = build_render_result(text, [LOGO, image(2, "B")])

    def test_next_and_previous_image_wrap(self):
        self.assertEqual(self.result.next_image_line(), 1)
        self.assertEqual(self.result.next_image_line(1), 3)
        self.assertEqual(self.result.next_image_line(3), 1)
        self.assertEqual(self.result.previous_image_line(1), 3)

    def test_next_link(self):
        self.assertEqual(self.result.next_link_line(0), 4)
        self.assertEqual(self.result.previous_link_line(0), 4)

    def test_lookup(self):
        self.assertEqual(self.result.image_at(3).alt, "B")
        self.assertEqual(self.result.link_at(0).href, "https://x.example.com")
        self.assertIsNone(self.result.image_at(0))

    def test_no_targets(self):
        self.assertIsNone(RenderResult(lines=["x"]).next_image_line())

    def test_rejects_out_of_range_indices(self):
        with self.assertRaises(ValidationError):
            RenderResult(lines=["x"], images=[LOGO], image_line_map={5: "img-1"})
        with self.assertRaises(ValidationError):
            RenderResult(lines=["x"], image_line_map={0: "img-1"})


if __name__ == "__main__":
    unittest.main()
