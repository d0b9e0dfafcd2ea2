"""
Tests for drawio_sync.patch_engine - tiered search/replace edits
"""

import sys
from pathlib import Path

import pytest

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "skills" / "diagram-sync" / "scripts"))

from drawio_sync.common import Edit, PatchNotFoundError  # noqa: E402  # type: ignore
from drawio_sync.formatter import format_xml  # noqa: E402  # type: ignore
from drawio_sync.patch_engine import (  # noqa: E402  # type: ignore
    apply_edits, find_line_match, replace_xml_parts,
)


DIAGRAM = (
    '<mxGraphModel><root>'
    '<mxCell id="0"/>'
    '<mxCell id="1" parent="0"/>'
    '<mxCell id="2" value="A" vertex="1" parent="1">'
    '<mxGeometry x="10" y="10" width="80" height="40" as="geometry"/>'
    '</mxCell>'
    '<mxCell id="3" value="C" vertex="1" parent="1">'
    '<mxGeometry x="200" y="10" width="80" height="40" as="geometry"/>'
    '</mxCell>'
    '</root></mxGraphModel>'
)

FLAT_CELLS = '<mxCell id="2" value="A"/><mxCell id="3" value="C"/>'


class TestExactTier:
    """Line-for-line matches"""

    def test_exact_swap(self):
        """Only the matched line changes"""
        report = apply_edits(FLAT_CELLS, [
            {'search': '<mxCell id="2" value="A"/>', 'replace': '<mxCell id="2" value="B"/>'},
        ])
        assert report.success
        assert report.tiers == ['exact']
        assert report.match_lines == [1]
        assert report.document == '<mxCell id="2" value="B"/>\n<mxCell id="3" value="C"/>'

    def test_multi_line_search(self):
        """A search spanning several formatted lines matches as a block"""
        search = ('<mxCell id="2" value="A" vertex="1" parent="1">'
                  '<mxGeometry x="10" y="10" width="80" height="40" as="geometry"/>'
                  '</mxCell>')
        replace = '    <mxCell id="2" value="A2" vertex="1" parent="1"/>'
        result = replace_xml_parts(DIAGRAM, [Edit(search, replace)])
        lines = result.split('\n')
        assert replace in lines
        assert 'mxGeometry x="10"' not in result
        assert 'mxGeometry x="200"' in result


class TestTrimmedTier:
    """Indentation drift between the search text and the live document"""

    def test_different_leading_spaces(self):
        """Search indentation that differs from the formatted line still matches"""
        report = apply_edits(DIAGRAM, [
            {'search': '        <mxCell id="1" parent="0"/>',
             'replace': '    <mxCell id="1" parent="0" visible="1"/>'},
        ])
        assert report.tiers == ['trimmed']
        expected = format_xml(DIAGRAM).replace(
            '    <mxCell id="1" parent="0"/>', '    <mxCell id="1" parent="0" visible="1"/>'
        )
        assert report.document == expected

    def test_tag_wrapped_over_lines(self):
        """A cell whose attributes span several lines matches a one-line search"""
        doc = '<root>\n  <mxCell id="2"\n          value="A"/>\n</root>'
        report = apply_edits(doc, [
            {'search': '<mxCell id="2" value="A"/>', 'replace': '  <mxCell id="2" value="B"/>'},
        ])
        assert report.tiers == ['trimmed']
        assert report.document == '<root>\n  <mxCell id="2" value="B"/>\n</root>'

    def test_replacement_spliced_verbatim(self):
        """Replacement text is not reformatted"""
        result = replace_xml_parts(DIAGRAM, [
            ('<mxCell id="0"/>', '<mxCell id="0"/><mxCell id="x"/>'),
        ])
        assert '<mxCell id="0"/><mxCell id="x"/>' in result.split('\n')

    def test_exact_preferred_over_trimmed(self):
        """An exact match later in the document beats a trimmed match earlier"""
        lines = ['  <a/>', '<a/>']
        match = find_line_match(lines, ['<a/>'])
        assert (match.start_line, match.end_line, match.tier) == (1, 2, 'exact')


class TestSubstringTier:
    """Last-resort substring replacement"""

    def test_partial_line_match(self):
        """A fragment of a line is replaced and the document reformatted"""
        report = apply_edits(DIAGRAM, [{'search': 'value="C"', 'replace': 'value="D"'}])
        assert report.tiers == ['substring']
        assert report.match_lines == [None]
        assert report.document == format_xml(DIAGRAM.replace('value="C"', 'value="D"'))

    def test_substring_then_line_edit(self):
        """After a substring edit the next search starts from the top again"""
        report = apply_edits(DIAGRAM, [
            {'search': 'value="C"', 'replace': 'value="D"'},
            {'search': '<mxCell id="0"/>', 'replace': '    <mxCell id="0" keep="1"/>'},
        ])
        assert report.tiers == ['substring', 'trimmed']
        assert '    <mxCell id="0" keep="1"/>' in report.document.split('\n')
        assert 'value="D"' in report.document


class TestOrderingAndHint:
    """Edits apply in order against the current document"""

    def test_sequential_edits_chain(self):
        """Edit 2 sees the output of edit 1"""
        result = replace_xml_parts(FLAT_CELLS, [
            {'search': '<mxCell id="2" value="A"/>', 'replace': '<mxCell id="2" value="B"/>'},
            {'search': '<mxCell id="2" value="B"/>', 'replace': '<mxCell id="2" value="Z"/>'},
        ])
        assert result == '<mxCell id="2" value="Z"/>\n<mxCell id="3" value="C"/>'

    def test_earlier_region_after_later_edit(self):
        """A backward edit still matches by restarting from line 0"""
        result = replace_xml_parts(FLAT_CELLS, [
            {'search': '<mxCell id="3" value="C"/>', 'replace': '<mxCell id="3" value="D"/>'},
            {'search': '<mxCell id="2" value="A"/>', 'replace': '<mxCell id="2" value="B"/>'},
        ])
        assert result == '<mxCell id="2" value="B"/>\n<mxCell id="3" value="D"/>'

    def test_hint_prefers_forward_match(self):
        """With duplicate lines, the scan starts at the hint position"""
        lines = ['<a/>', '<b/>', '<a/>', '<c/>']
        assert find_line_match(lines, ['<a/>'], hint_line=1).start_line == 2
        assert find_line_match(lines, ['<a/>'], hint_line=3).start_line == 0

    def test_duplicate_lines_edited_in_sequence(self):
        """Two identical searches hit the first then the second occurrence"""
        doc = '<a/><b/><a/>'
        result = replace_xml_parts(doc, [('<a/>', '<x/>'), ('<a/>', '<y/>')])
        assert result == '<x/>\n<b/>\n<y/>'

    def test_empty_replace_deletes(self):
        result = replace_xml_parts(FLAT_CELLS, [('<mxCell id="3" value="C"/>', '')])
        assert result == '<mxCell id="2" value="A"/>'


class TestFailures:
    """Batches stop at the first edit that cannot be located"""

    def test_partial_progress_reported(self):
        edits = [
            {'search': '<mxCell id="2" value="A"/>', 'replace': '<mxCell id="2" value="B"/>'},
            {'search': '<mxCell id="99"/>', 'replace': '<mxCell id="100"/>'},
            {'search': '<mxCell id="3" value="C"/>', 'replace': ''},
        ]
        report = apply_edits(FLAT_CELLS, edits)
        assert not report.success
        assert report.applied_count == 1
        assert report.error.index == 1
        assert report.error.search == '<mxCell id="99"/>'
        assert report.document == '<mxCell id="2" value="B"/>\n<mxCell id="3" value="C"/>'

    def test_raises_with_partial_document(self):
        edits = [
            {'search': '<mxCell id="2" value="A"/>', 'replace': '<mxCell id="2" value="B"/>'},
            {'search': '<mxCell id="99"/>', 'replace': '<mxCell id="100"/>'},
        ]
        with pytest.raises(PatchNotFoundError) as exc_info:
            replace_xml_parts(FLAT_CELLS, edits)
        error = exc_info.value
        assert error.search == '<mxCell id="99"/>'
        assert error.index == 1
        assert error.applied_count == 1
        assert 'value="B"' in error.partial_document
        assert 'mxCell id="99"' in str(error)

    def test_blank_search_fails(self):
        """A blank search is a failure, not an insertion at the hint line"""
        report = apply_edits(FLAT_CELLS, [
            {'search': '<mxCell id="2" value="A"/>', 'replace': '<mxCell id="2" value="B"/>'},
            {'search': '  ', 'replace': '<x/>'},
        ])
        assert report.error.index == 1
        assert report.applied_count == 1
        assert '<x/>' not in report.document

    def test_no_edits(self):
        report = apply_edits(DIAGRAM, [])
        assert report.success
        assert report.applied_count == 0
        assert report.document == format_xml(DIAGRAM)


class TestEditCoerce:
    """Tests for Edit.coerce"""

    def test_accepted_forms(self):
        assert Edit.coerce({'search': 'a', 'replace': 'b'}) == Edit('a', 'b')
        assert Edit.coerce(('a', 'b')) == Edit('a', 'b')
        assert Edit.coerce({'search': 'a'}) == Edit('a', '')
        edit = Edit('a', 'b')
        assert Edit.coerce(edit) is edit

    def test_rejected_forms(self):
        with pytest.raises(ValueError):
            Edit.coerce({'replace': 'b'})
        with pytest.raises(ValueError):
            Edit.coerce('a')
