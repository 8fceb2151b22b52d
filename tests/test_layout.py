from pdf.layout import PositionedTextFragment, fragments_to_rows, group_rows, split_columns


def frag(text, x, y, width=10.0, page=1):
    return PositionedTextFragment(text=text, x=x, y=y, width=width, height=8.0, page=page)


def test_gap_over_column_threshold_starts_new_cell():
    row = [frag("JUN 28", 0, 100, width=30), frag("STARBUCKS", 61, 100)]
    assert split_columns(row) == ["JUN 28", "STARBUCKS"]


def test_gap_under_column_threshold_stays_in_cell():
    row = [frag("JUN 28", 0, 100, width=30), frag("STARBUCKS", 59, 100)]
    assert split_columns(row) == ["JUN 28  STARBUCKS"]


def test_small_gaps_use_single_space_or_concatenate():
    row = [frag("STAR", 0, 100, width=20), frag("BUCKS", 21, 100, width=20), frag("#12", 46, 100)]
    assert split_columns(row) == ["STARBUCKS #12"]


def test_rows_group_within_y_tolerance_and_sort_by_x():
    fragments = [
        frag("5.25", 300, 101.5),
        frag("2024-06-28", 10, 100),
        frag("next line", 10, 120),
    ]
    rows = group_rows(fragments)
    assert [[f.text for f in r] for r in rows] == [["2024-06-28", "5.25"], ["next line"]]


def test_y_beyond_tolerance_starts_new_row():
    rows = group_rows([frag("a", 0, 100), frag("b", 0, 103.5)])
    assert len(rows) == 2


def test_empty_rows_are_dropped():
    grid = fragments_to_rows([frag("   ", 0, 50), frag("2024-06-28", 0, 100), frag("5.25", 200, 100)])
    assert grid == [["2024-06-28", "5.25"]]
