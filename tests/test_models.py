"""
Tests for the CardQuill data model.
"""

import pytest
from lxml import html

from cardquill.exceptions import StyleError
from cardquill.models import (
    CommitOutcome,
    CommitResult,
    ExportAttempt,
    ExportJob,
    Rect,
    TextStyle,
    TextUnit,
    binarize_align,
    binarize_weight,
)


class TestBinarization:
    """Test cases for weight and alignment binarization."""

    @pytest.mark.parametrize("value,expected", [
        ("700", "bold"),
        ("600", "bold"),
        (800, "bold"),
        ("bold", "bold"),
        ("bolder", "bold"),
        ("500", "normal"),
        ("normal", "normal"),
        ("lighter", "normal"),
        (None, "normal"),
    ])
    def test_weight(self, value, expected):
        assert binarize_weight(value) == expected

    @pytest.mark.parametrize("value,expected", [
        ("center", "center"),
        ("RIGHT", "right"),
        ("justify", "left"),
        ("start", "left"),
        ("end", "left"),
        (None, "left"),
    ])
    def test_align(self, value, expected):
        assert binarize_align(value) == expected


class TestTextStyle:
    """Test cases for TextStyle."""

    def test_defaults(self):
        style = TextStyle()

        assert style.to_css() == {
            "font-size": "16px",
            "color": "#000000",
            "font-weight": "normal",
            "text-align": "left",
        }
        assert style.is_canonical()

    def test_invalid_font_size(self):
        with pytest.raises(StyleError):
            TextStyle(font_size_px=0)
        with pytest.raises(StyleError):
            TextStyle(font_size_px="12")
        with pytest.raises(StyleError):
            TextStyle(font_size_px=True)

    def test_normalized(self):
        loose = TextStyle(font_size_px=20, color_hex="RED", weight="700", align="justify")

        assert not loose.is_canonical()
        assert loose.normalized() == TextStyle(20, "#ff0000", "bold", "left")

    def test_coerce(self):
        style = TextStyle.coerce("18.6px", "rgb(0, 0, 255)", "bolder", "center")

        assert style == TextStyle(19, "#0000ff", "bold", "center")
        assert TextStyle.coerce("huge").font_size_px == 16

    def test_with_changes_and_dict(self):
        style = TextStyle().with_changes(font_size_px=32)

        assert style.font_size_px == 32
        assert style.to_dict() == {
            "fontSizePx": 32,
            "colorHex": "#000000",
            "weight": "normal",
            "align": "left",
        }


class TestRect:
    """Test cases for Rect."""

    def test_edges_and_contains(self):
        rect = Rect(10, 20, 30, 40)

        assert (rect.left, rect.top, rect.right, rect.bottom) == (10, 20, 40, 60)
        assert rect.contains(10, 20)
        assert rect.contains(40, 60)
        assert not rect.contains(41, 30)

    def test_negative_sizes_are_normalized(self):
        rect = Rect(0, 0, -5, -6)

        assert (rect.width, rect.height) == (5, 6)

    def test_scaled(self):
        assert Rect(10, 20, 30, 40).scaled(0.5) == Rect(5, 10, 15, 20)


class TestTextUnit:
    """Test cases for TextUnit."""

    def test_original_style_defaults_to_style(self):
        node = html.fromstring("<p>Hi</p>")
        unit = TextUnit(id="text-0-1", node=node, text="Hi", original_text="Hi", style=TextStyle())

        assert unit.original_style == unit.style
        payload = unit.to_dict()
        assert payload["tag"] == "p"
        assert payload["originalText"] == "Hi"
        assert "bounds" not in payload


class TestResults:
    """Test cases for commit and export records."""

    def test_commit_result_truthiness(self):
        assert CommitResult(CommitOutcome.SUCCESS)
        rejected = CommitResult(CommitOutcome.EMPTY_TEXT_REJECTED, "Text cannot be empty")
        assert not rejected
        assert not rejected.success

    def test_export_job_validation(self):
        with pytest.raises(ValueError):
            ExportJob(0, 100, "a.png")
        with pytest.raises(ValueError):
            ExportJob(100, 100, "a.png", scale_factor=0)

    def test_export_job_for_attempt(self):
        job = ExportJob(900, 1200, "cover.png")

        fallback = job.for_attempt(ExportAttempt.FALLBACK, 1.0)

        assert job.attempt is ExportAttempt.PRIMARY
        assert job.pixel_size == (1800, 2400)
        assert fallback.attempt is ExportAttempt.FALLBACK
        assert fallback.pixel_size == (900, 1200)
