"""
Content extraction tests.

extract_content() never raises and always prefers structured data:
fenced block → first balanced braces → trimmed text.
"""
import pytest

from dbcoach.utils.parser import (
    check_completeness,
    extract_code_block,
    extract_content,
    extract_rationale,
    find_balanced_region,
    RATIONALE_MAX_CHARS,
)


class TestExtractContent:

    def test_fenced_json_block(self):
        raw = 'Here is the schema:\n```json\n{"tables": ["books", "members"]}\n```\nDone.'
        assert extract_content(raw) == {"tables": ["books", "members"]}

    def test_unlabelled_fence_with_json(self):
        raw = '```\n[1, 2, 3]\n```'
        assert extract_content(raw) == [1, 2, 3]

    def test_non_json_fence_is_skipped_for_later_json_fence(self):
        raw = '```sql\nCREATE TABLE books (id INT);\n```\n\n```json\n{"ok": true}\n```'
        assert extract_content(raw) == {"ok": True}

    def test_balanced_braces_in_prose(self):
        raw = 'The design is {"entities": {"book": {"title": "str"}}} as requested.'
        assert extract_content(raw) == {"entities": {"book": {"title": "str"}}}

    def test_braces_inside_strings_do_not_confuse_matching(self):
        raw = 'Result: {"note": "use {curly} braces", "n": 1} end'
        assert extract_content(raw) == {"note": "use {curly} braces", "n": 1}

    def test_invalid_fenced_json_falls_through_to_braces(self):
        raw = '```json\nnot json\n```\nfallback {"a": 1}'
        assert extract_content(raw) == {"a": 1}

    def test_plain_text_is_trimmed(self):
        assert extract_content("   just prose, no data   \n") == "just prose, no data"

    @pytest.mark.parametrize("raw", ["", None, "{unclosed", "```json\n{broken\n```", "{}}{"])
    def test_never_raises(self, raw):
        result = extract_content(raw)
        assert isinstance(result, (str, dict, list))

    def test_scalar_json_is_not_structured(self):
        assert extract_content('```json\n"just a string"\n```') == '```json\n"just a string"\n```'


class TestBalancedRegion:

    def test_returns_first_region(self):
        assert find_balanced_region('a {"x": {"y": 1}} b {"z": 2}') == '{"x": {"y": 1}}'

    def test_unbalanced_returns_none(self):
        assert find_balanced_region('{"x": 1') is None

    def test_no_opener_returns_none(self):
        assert find_balanced_region("no braces here") is None


class TestCodeBlock:

    def test_language_block(self):
        raw = "Schema:\n```sql\nCREATE TABLE books (\n  id SERIAL PRIMARY KEY\n);\n```"
        assert extract_code_block(raw, "sql") == "CREATE TABLE books (\n  id SERIAL PRIMARY KEY\n);"

    def test_language_match_is_case_insensitive(self):
        assert extract_code_block("```SQL\nSELECT 1;\n```", "sql") == "SELECT 1;"

    def test_other_language_is_not_matched(self):
        raw = "```json\n{}\n```"
        assert extract_code_block(raw, "sql") == raw

    def test_falls_back_to_trimmed_text(self):
        assert extract_code_block("  CREATE TABLE t (id INT);  ", "sql") == "CREATE TABLE t (id INT);"


class TestRationale:

    def test_reasoning_marker_up_to_fence(self):
        raw = "REASONING: Loans reference books and members.\n\n```json\n{}\n```"
        assert extract_rationale(raw) == "Loans reference books and members."

    def test_analysis_heading_up_to_schema_heading(self):
        raw = "## Analysis\nThree entities.\n## Schema\nCREATE TABLE ..."
        assert extract_rationale(raw) == "Three entities."

    def test_first_long_paragraph_fallback(self):
        paragraph = "This design normalizes members and books into separate tables for integrity."
        assert extract_rationale(f"Short.\n\n{paragraph}\n\nMore") == paragraph

    def test_nothing_found(self):
        assert extract_rationale("ok") == ""

    def test_prose_only_response_is_not_its_own_rationale(self):
        prose = "Use three tables: books, members and loans, with loans referencing the other two."
        assert extract_rationale(f"  {prose}\n") == ""

    def test_long_fallback_paragraph_is_capped(self):
        paragraph = "Members borrow books through loans. " * 30
        rationale = extract_rationale(f"Design notes.\n\n{paragraph}\n\n```sql\nSELECT 1;\n```")

        assert rationale.endswith("...")
        assert len(rationale) <= RATIONALE_MAX_CHARS + 3
        assert paragraph.startswith(rationale[:-3])


class TestCompleteness:

    def test_complete_response(self):
        assert check_completeness("```json\n{}\n```") == (True, [])

    def test_odd_fence_count_is_truncated(self):
        complete, issues = check_completeness('```json\n{"tables": [')
        assert complete is False
        assert "Incomplete code block detected" in issues

    def test_truncation_phrase_at_end(self):
        complete, issues = check_completeness("The schema is ready. However,")
        assert complete is False
        assert len(issues) == 1

    def test_empty_is_complete(self):
        assert check_completeness("") == (True, [])
