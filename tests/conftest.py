# tests/conftest.py
import copy

import pytest

from websketch_ir.core.utils.builders import make_capture, make_node, make_text

RAW_CAPTURE = {
    "schemaVersion": "0.1.0",
    "url": "https://example.com/login",
    "viewport": {"width": 1920, "height": 1080},
    "capturedAt": "2025-01-01T12:00:00.000Z",
    "root": {
        "role": "PAGE",
        "bounds": [0, 0, 1, 1],
        "interactive": False,
        "children": [
            {
                "role": "BUTTON",
                "bounds": [0.1, 0.1, 0.5, 0.2],
                "interactive": True,
                "semantics": "submit",
                "text": {"hash": "a1b2c3", "len": 7},
                "children": [],
            }
        ],
    },
}


@pytest.fixture
def raw_capture():
    """A fresh, valid decoded capture that tests may mutate freely."""
    return copy.deepcopy(RAW_CAPTURE)


@pytest.fixture
def minimal():
    return make_capture(make_node("PAGE", [0, 0, 1, 1]))


@pytest.fixture
def login_page():
    form = make_node("FORM", [0.3, 0.25, 0.4, 0.55], semantics="login", children=[
        make_node("INPUT", [0.32, 0.35, 0.36, 0.12], interactive=True, semantics="email"),
        make_node("INPUT", [0.32, 0.48, 0.36, 0.12], interactive=True, semantics="password"),
        make_node("BUTTON", [0.32, 0.62, 0.16, 0.12], interactive=True,
                  text=make_text("Sign in")),
        make_node("LINK", [0.52, 0.62, 0.16, 0.12], interactive=True,
                  text=make_text("Forgot password?")),
    ])
    header = make_node("HEADER", [0, 0, 1, 0.12], children=[
        make_node("ICON", [0.01, 0.02, 0.05, 0.08]),
        make_node("NAV", [0.6, 0.02, 0.38, 0.08], children=[
            make_node("LINK", [0.62, 0.04, 0.1, 0.04], interactive=True, text=make_text("Pricing")),
            make_node("LINK", [0.8, 0.04, 0.1, 0.04], interactive=True, text=make_text("About")),
        ]),
    ])
    footer = make_node("FOOTER", [0, 0.88, 1, 0.12], text=make_text("© 2025 Example Inc."))
    root = make_node("PAGE", [0, 0, 1, 1], children=[header, form, footer])
    return make_capture(root, url="https://example.com/login")


@pytest.fixture
def deep_nesting():
    node = make_node("TEXT", [0.4, 0.4, 0.2, 0.2], text=make_text("leaf"))
    for level in range(40, 0, -1):
        inset = level * 0.01
        node = make_node("SECTION", [inset, inset, 1 - 2 * inset, 1 - 2 * inset], children=[node])
    return make_capture(make_node("PAGE", [0, 0, 1, 1], children=[node]))


@pytest.fixture
def repeated_siblings():
    rows = [
        make_node("LINK", [0.05, 0.05 + i * 0.0045, 0.9, 0.004], interactive=True, text=make_text(f"item {i}"))
        for i in range(200)
    ]
    return make_capture(make_node("PAGE", [0, 0, 1, 1], children=[make_node("LIST", [0, 0, 1, 1], children=rows)]))


@pytest.fixture
def odd_bounds():
    children = [
        make_node("ICON", [0, 0, 0, 0]),
        make_node("ICON", [1, 1, 0, 0]),
        make_node("IMAGE", [0.999, 0.999, 0.001, 0.001]),
        make_node("SECTION", [0, 0.5, 1, 0]),
        make_node("CARD", [0.5, 0.5, 1, 1], semantics="overflow"),
        make_node("MODAL", [0, 0, 1, 1], text=make_text("x" * 1000)),
    ]
    return make_capture(make_node("PAGE", [0, 0, 1, 1], children=children))


@pytest.fixture
def text_node():
    root = make_node("PAGE", [0, 0, 1, 1], children=[
        make_node("TEXT", [0.1, 0.1, 0.8, 0.3], text=make_text("lorem ipsum " * 40)),
    ])
    return make_capture(root)
