"""Tests for the markup parser and mention extraction."""
import unittest

from core.content_parser import ContentParser


class TestMentions(unittest.TestCase):
    def setUp(self):
        self.parser = ContentParser()

    def test_single_mention(self):
        result = self.parser.parse("cc @alice please review")
        self.assertEqual(result.mentions, ["alice"])
        self.assertIn('<a class="mention" href="/u/alice">@alice</a>', result.text)

    def test_mentions_keep_source_order_and_duplicates(self):
        result = self.parser.parse("@bob then @alice and @bob again")
        self.assertEqual(result.mentions, ["bob", "alice", "bob"])

    def test_email_address_is_not_a_mention(self):
        result = self.parser.parse("write to bob@example.com")
        self.assertEqual(result.mentions, [])

    def test_mention_inside_code_is_ignored(self):
        result = self.parser.parse("run `@decorator` then ping @carol")
        self.assertEqual(result.mentions, ["carol"])
        self.assertIn("<code>@decorator</code>", result.text)

    def test_mention_inside_bold(self):
        result = self.parser.parse("**@dave** look")
        self.assertEqual(result.mentions, ["dave"])
        self.assertIn("<strong>", result.text)

    def test_mention_in_url_is_part_of_link(self):
        result = self.parser.parse("see https://example.com/@erin")
        self.assertEqual(result.mentions, [])
        self.assertIn('href="https://example.com/@erin"', result.text)


class TestRendering(unittest.TestCase):
    def setUp(self):
        self.parser = ContentParser()

    def test_empty_input(self):
        result = self.parser.parse("")
        self.assertEqual(result.text, "")
        self.assertEqual(result.mentions, [])

    def test_html_is_escaped(self):
        result = self.parser.parse("<script>alert(1)</script>")
        self.assertNotIn("<script>", result.text)
        self.assertIn("&lt;script&gt;", result.text)

    def test_paragraphs_and_line_breaks(self):
        result = self.parser.parse("one\ntwo\n\nthree")
        self.assertEqual(result.text, "<p>one<br>two</p><p>three</p>")

    def test_inline_markup(self):
        result = self.parser.parse("**bold** and *italic*")
        self.assertEqual(result.text, "<p><strong>bold</strong> and <em>italic</em></p>")

    def test_url_trailing_punctuation_stays_outside_link(self):
        result = self.parser.parse("visit https://example.com.")
        self.assertIn('<a href="https://example.com" rel="nofollow">https://example.com</a>.', result.text)

    def test_malformed_markup_degrades_to_text(self):
        for source in ("**unclosed", "*", "`open code", "@", "2 * 3 * 4"):
            with self.subTest(source=source):
                result = self.parser.parse(source)
                self.assertTrue(result.text.startswith("<p>"))
                self.assertEqual(result.mentions, [])

    def test_parse_is_pure(self):
        first = self.parser.parse("hi @alice")
        second = self.parser.parse("hi @alice")
        self.assertEqual(first, second)


if __name__ == "__main__":
    unittest.main()
