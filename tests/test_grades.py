"""
Test: letter grade <-> level mapping and grade reference tables.
"""
import pytest
from analisis.grades import grade_to_level, level_to_grade, grade_for_marks, reference_table


@pytest.mark.parametrize("grade,level", [("A", 6), ("B", 5), ("C", 4), ("D", 3), ("E", 2), ("F", 1)])
def test_grade_to_level(grade, level):
    assert grade_to_level(grade) == level
    assert grade_to_level(grade.lower()) == level
    assert level_to_grade(level) == grade


@pytest.mark.parametrize("grade", ["", None, "TH", "G", "A+"])
def test_unknown_grade_is_zero(grade):
    assert grade_to_level(grade) == 0


def test_level_to_grade_undefined_for_zero():
    assert level_to_grade(0) is None
    assert level_to_grade(7) is None
    assert level_to_grade(None) is None


@pytest.mark.parametrize("marks,grade", [
    (100, "A"), (85, "A"), (84, "B"), (70, "B"), (69.5, "C"), (55, "C"),
    (40, "D"), (39, "E"), (20, "E"), (19, "F"), (0, "F"),
])
def test_grade_for_marks(marks, grade):
    assert grade_for_marks(marks) == grade


def test_grade_for_marks_out_of_range():
    assert grade_for_marks(None) is None
    assert grade_for_marks(101) is None
    assert grade_for_marks(-1) is None


def test_reference_table_rows():
    df = reference_table()
    assert list(df["Gred"]) == ["A", "B", "C", "D", "E", "F"]
    assert df.loc[0, "TP Sasaran"] == "TP 6"
    assert df.loc[5, "Julat Markah"] == "0 - 19"
