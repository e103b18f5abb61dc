from __future__ import annotations

import pytest

from lib_layered_prompts.adapters.file_loaders.frontmatter import split_frontmatter
from lib_layered_prompts.domain.errors import InvalidFormat


def test_metadata_and_body_are_split() -> None:
    meta, body = split_frontmatter("---\ndescription: Style\ntargets: [cursor]\n---\n# Title\n\nText\n", path="a.md")
    assert meta == {"description": "Style", "targets": ["cursor"]}
    assert body == "# Title\n\nText\n"


def test_byte_order_mark_is_tolerated() -> None:
    meta, _ = split_frontmatter("\ufeff---\ndescription: x\n---\nbody", path="a.md")
    assert meta["description"] == "x"


def test_empty_header_is_an_empty_mapping() -> None:
    meta, body = split_frontmatter("---\n---\nbody\n", path="a.md")
    assert meta == {}
    assert body == "body\n"


@pytest.mark.parametrize(
    "text",
    [
        "no frontmatter at all",
        "---\ndescription: never closed\n",
        "---\n- a\n- b\n---\nbody",
        "---\ndescription: [unclosed\n---\nbody",
    ],
)
def test_malformed_documents_are_invalid_format(text: str) -> None:
    with pytest.raises(InvalidFormat):
        split_frontmatter(text, path="bad.md")


def test_missing_frontmatter_error_carries_a_hint() -> None:
    with pytest.raises(InvalidFormat) as excinfo:
        split_frontmatter("plain", path="bad.md")
    assert excinfo.value.remedy
    assert "Hint:" in str(excinfo.value)
