import unittest

from mailview.images import extract_images
from mailview.markdown import html_to_markdown


class TestLinks(unittest.TestCase):
    def test_text_equal_to_href_is_shortened(self):
        html = '<p><a href="https://example.com/about/">https://example.com/about/</a></p>'
        self.assertEqual(html_to_markdown(html), "example.com/about")

    def test_short_href_is_appended(self):
        html = '<p>Please <a href="https://example.com/x">read more</a> today</p>'
        self.assertEqual(html_to_markdown(html), "Please read more (https://example.com/x) today")

    def test_long_tracking_href_is_dropped(self):
        href = "https://click.example.com/track?u=" + "a" * 100
        html = f'<p><a href="{href}">View in browser</a></p>'
        markdown = html_to_markdown(html)
        self.assertEqual(markdown, "View in browser")
        self.assertNotIn("click.example.com", markdown)

    def test_empty_link_shows_host(self):
        html = '<p><a href="https://shop.example.com/cart"></a></p>'
        self.assertEqual(html_to_markdown(html), "[shop.example.com]")

    def test_mailto_keeps_text(self):
        html = '<p><a href="mailto:help@example.com">Contact us</a></p>'
        self.assertEqual(html_to_markdown(html), "Contact us")


class TestBlocks(unittest.TestCase):
    def test_placeholder_gets_its_own_paragraph(self):
        html = extract_images('<p>Before <img src="x.png" alt="Logo"> after</p>').html
        lines = html_to_markdown(html).split("\n")
        self.assertIn("⬚ [IMG:1] Logo", lines)
        for line in lines:
            if "[IMG:1]" in line:
                self.assertEqual(line, "⬚ [IMG:1] Logo")

    def test_image_in_heading_follows_heading(self):
        html = extract_images('<h2>Hello <img src="wave.png" alt="Wave"></h2><p>Body</p>').html
        lines = html_to_markdown(html).split("\n")
        self.assertEqual(lines, ["## Hello [IMG:1]", "", "⬚ [IMG:1] Wave", "", "Body"])

    def test_atx_headings_and_dash_bullets(self):
        markdown = html_to_markdown("<h2>Title</h2><ul><li>one</li><li>two</li></ul>")
        self.assertIn("## Title", markdown)
        self.assertIn("- one", markdown)
        self.assertIn("- two", markdown)

    def test_empty_divs_are_dropped(self):
        self.assertEqual(html_to_markdown("<div> </div><div><div></div><p>Hi</p></div>"), "Hi")

    def test_hidden_elements_are_dropped(self):
        markdown = html_to_markdown('<p>Shown</p><span style="display: none">Hidden</span><script>x()</script>')
        self.assertEqual(markdown, "Shown")

    def test_no_runs_of_blank_lines(self):
        html = "<div><p>a</p></div>" + "<div></div>" * 5 + "<br><br><br><p>b</p>"
        self.assertNotIn("\n\n\n", html_to_markdown(html))


class TestDataTables(unittest.TestCase):
    def test_header_table(self):
        html = (
            "<table><tr><th>Item</th><th>Qty</th><th>Price</th></tr>"
            "<tr><td>Widget</td><td>2</td><td>$5</td></tr></table>"
        )
        lines = html_to_markdown(html).split("\n")
        self.assertEqual(lines, [
            "| Item | Qty | Price |",
            "| --- | --- | --- |",
            "| Widget | 2 | $5 |",
        ])

    def test_first_row_is_header_without_th(self):
        html = (
            "<table><tr><td>a</td><td>b</td><td>c</td></tr>"
            "<tr><td>1</td><td>2</td><td>3</td></tr></table>"
        )
        lines = html_to_markdown(html).split("\n")
        self.assertEqual(lines[1], "| --- | --- | --- |")
        self.assertEqual(len(lines), 3)

    def test_short_rows_are_padded(self):
        html = (
            "<table><tr><th>A</th><th>B</th><th>C</th></tr>"
            "<tr><td>1</td></tr></table>"
        )
        lines = html_to_markdown(html).split("\n")
        self.assertEqual(lines[2].count("|"), 4)

    def test_image_in_cell_is_referenced_and_follows_table(self):
        html = extract_images(
            "<table><tr><th>Product</th><th>Photo</th></tr>"
            "<tr><td>Widget</td><td><img src=\"w.png\" alt=\"Widget shot\"></td></tr></table>"
        ).html
        lines = html_to_markdown(html).split("\n")
        self.assertEqual(lines, [
            "| Product | Photo |",
            "| --- | --- |",
            "| Widget | [IMG:1] |",
            "",
            "⬚ [IMG:1] Widget shot",
        ])

    def test_caption_becomes_bold_title(self):
        html = "<table><caption>Totals</caption><tr><th>A</th><th>B</th></tr><tr><td>1</td><td>2</td></tr></table>"
        markdown = html_to_markdown(html)
        self.assertTrue(markdown.startswith("**Totals**\n\n| A | B |"))


if __name__ == "__main__":
    unittest.main()
