"""
Tests for keyword-based job function inference
"""

import pytest

from jobfeed.utils.function_inference import infer_function


class TestInferFunction:
    @pytest.mark.parametrize(
        "title,expected",
        [
            ("Senior Backend Engineer", "Engineering"),
            ("Account Executive, Mid-Market", "Sales"),
            ("Product Designer", "Design"),
            ("Senior Data Scientist", "Data"),
            ("Technical Recruiter", "People"),
            ("Associate General Counsel", "Legal"),
            ("Group Product Manager", "Product"),
        ],
    )
    def test_keyword_matches(self, title, expected):
        assert infer_function(title) == expected

    def test_no_match(self):
        assert infer_function("Chief of Staff") is None

    def test_word_boundaries(self):
        """'pm' must not match inside 'equipment'"""
        assert infer_function("Equipment Coordinator") is None

    def test_empty_title(self):
        assert infer_function("") is None

    def test_allowed_vocabulary(self):
        assert infer_function("Senior Backend Engineer", allowed=["Sales", "Legal"]) is None
        assert infer_function("Senior Backend Engineer", allowed=["engineering"]) == "Engineering"
