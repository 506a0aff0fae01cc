import pytest

from dispmap.common.errors import ParseError
from dispmap.common.models import RawRow
from dispmap.pipeline.scrape import iter_table_rows

LISTING_HTML = """
<html><body>
<table>
  <thead><tr><th>Name</th><th>Address</th><th>City</th><th>Zip</th><th>Website</th></tr></thead>
  <tbody>
    <tr><td> Housing Works Cannabis Co </td><td>750 Broadway</td><td>New York</td><td>10003</td><td>hwcannabis.co</td></tr>
    <tr><td>Short Row</td><td>1 Main St</td><td>Albany</td></tr>
    <tr><td>Delivery Only Co ***</td><td>-</td><td>-</td><td>-</td><td>https://delivery.example</td><td>extra</td></tr>
  </tbody>
</table>
</body></html>
"""


def test_rows_with_five_cells_are_trimmed_and_short_rows_dropped():
    rows = list(iter_table_rows(LISTING_HTML))

    assert rows == [
        RawRow("Housing Works Cannabis Co", "750 Broadway", "New York", "10003", "hwcannabis.co"),
        RawRow("Delivery Only Co ***", "-", "-", "-", "https://delivery.example"),
    ]


def test_table_without_tbody_is_still_read():
    html = "<table><tr><td>A</td><td>B</td><td>C</td><td>10001</td><td>a.com</td></tr></table>"

    assert [row.name for row in iter_table_rows(html)] == ["A"]


def test_document_without_table_yields_nothing():
    assert list(iter_table_rows("<html><body><p>Maintenance</p></body></html>")) == []


def test_only_short_rows_yields_nothing_without_raising():
    html = "<table><tbody><tr><td>a</td><td>b</td></tr><tr><td>c</td></tr></tbody></table>"

    assert list(iter_table_rows(html)) == []


@pytest.mark.parametrize("html", ["", "   \n\t "])
def test_empty_document_raises_parse_error(html):
    with pytest.raises(ParseError):
        iter_table_rows(html)


def test_parse_error_raised_before_iteration():
    with pytest.raises(ParseError):
        iter_table_rows(None)


@pytest.mark.parametrize(
    "html",
    ["\x00\x01\x02 not html at all }{", "Service Unavailable", "{\"error\": \"maintenance\"}"],
)
def test_document_without_markup_raises_parse_error(html):
    with pytest.raises(ParseError):
        iter_table_rows(html)


def test_inline_tags_and_wrapped_cells_collapse_to_single_spaces():
    html = (
        "<table><tbody><tr>"
        "<td>Smith<em>'s</em> Dispensary</td>"
        "<td>750\n      Broadway</td>"
        "<td>New<br>York</td>"
        "<td> 10003 </td>"
        "<td>smiths.example</td>"
        "</tr></tbody></table>"
    )

    rows = list(iter_table_rows(html))

    assert rows == [RawRow("Smith's Dispensary", "750 Broadway", "New York", "10003", "smiths.example")]
