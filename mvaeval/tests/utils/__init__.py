"""
Test utilities and helper functions.

Provides common functionality for test setup, data generation,
and result validation across the test suite.
"""

from .mock_data_generator import (
    create_raw_event_file,
    create_signal_background_file,
    generate_class_events,
    generate_raw_events,
    generate_score_samples,
)
from .test_helpers import (
    LinearScorer,
    assert_arrays_close,
    assert_file_exists,
    assert_raises_with_message,
    assert_value_in_range,
)

__all__ = [
    "LinearScorer",
    "assert_arrays_close",
    "assert_file_exists",
    "assert_raises_with_message",
    "assert_value_in_range",
    "create_raw_event_file",
    "create_signal_background_file",
    "generate_class_events",
    "generate_raw_events",
    "generate_score_samples",
]
