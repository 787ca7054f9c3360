from __future__ import annotations

import pandas as pd
import pytest

from segment_filters.contracts.tree import FilterTree
from segment_filters.orchestrator.editor import FilterEditor
from segment_filters_validation.stubs import build_sample_tree


@pytest.fixture()
def sample_tree() -> FilterTree:
    return build_sample_tree()


@pytest.fixture()
def legacy_filter() -> dict:
    return {
        "filter_type": "and",
        "children": [
            ["is", "visit:country", ["US"]],
            {
                "filter_type": "or",
                "children": [
                    ["is", "visit:device", ["mobile"]],
                    ["contains", "event:page", ["/pricing"]],
                ],
            },
        ],
    }


@pytest.fixture()
def visitors_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "visit:country": ["US", "US", "UK", "DE", None],
            "visit:device": ["mobile", "desktop", "mobile", "tablet", "mobile"],
            "sessions": [5, 1, 4, 0, 10],
            "is_subscriber": [True, False, True, False, True],
        }
    )


@pytest.fixture()
def editor() -> FilterEditor:
    return FilterEditor(labels={"visit:country": "Country"})
