"""Template resolver: path walking, placeholder substitution, value rendering."""

import pytest

from storeflow.application.services.templates import (
    get_path,
    resolve_mapping,
    resolve_template,
    resolve_value,
)

BINDINGS = {
    "data": {
        "name": "Widget",
        "quantity": 3,
        "price": 3.5,
        "whole": 4.0,
        "vip": True,
        "tags": ["a", "b"],
        "customer": {"email": "ann@x.io", "orders": [{"id": "o-1"}]},
        "missing": None,
    },
    "context": {"storeId": "store-1", "userId": "user-9"},
}


def test_get_path_walks_dicts_and_lists() -> None:
    assert get_path(BINDINGS["data"], "customer.orders.0.id") == "o-1"
    assert get_path(BINDINGS["data"], "customer.email") == "ann@x.io"


@pytest.mark.parametrize(
    "path",
    [
        "nope",
        "customer.nope",
        "customer.orders.5.id",
        "customer.orders.x",
        "customer.orders.²",
        "name.length",
        "",
    ],
)
def test_get_path_returns_none_on_miss(path: str) -> None:
    assert get_path(BINDINGS["data"], path) is None


def test_resolves_data_and_context_placeholders() -> None:
    rendered = resolve_template(
        "{{data.name}} low at {{ context.storeId }}: {{data.quantity}} left", BINDINGS
    )
    assert rendered == "Widget low at store-1: 3 left"


def test_values_render_like_the_admin_ui_expects() -> None:
    assert resolve_template("{{data.price}}", BINDINGS) == "3.5"
    assert resolve_template("{{data.whole}}", BINDINGS) == "4"
    assert resolve_template("{{data.vip}}", BINDINGS) == "true"
    assert resolve_template("{{data.tags}}", BINDINGS) == "a,b"


def test_missing_or_null_values_leave_placeholder() -> None:
    assert resolve_template("Hi {{data.nope}}!", BINDINGS) == "Hi {{data.nope}}!"
    assert resolve_template("{{ data.missing }}", BINDINGS) == "{{ data.missing }}"


def test_unknown_root_is_not_a_placeholder() -> None:
    assert resolve_template("{{user.name}}", BINDINGS) == "{{user.name}}"


def test_text_without_placeholders_is_unchanged() -> None:
    text = "Plain text with {braces} and }} stray {{ marks"
    assert resolve_template(text, BINDINGS) == text
    assert resolve_template(resolve_template(text, BINDINGS), BINDINGS) == text


def test_resolve_value_passes_non_strings_through() -> None:
    payload = {"nested": "{{data.name}}"}
    assert resolve_value(42, BINDINGS) == 42
    assert resolve_value(payload, BINDINGS) is payload
    assert resolve_value("{{data.name}}", BINDINGS) == "Widget"


def test_resolve_mapping_renders_top_level_strings_only() -> None:
    rendered = resolve_mapping(
        {"status": "vip-{{data.name}}", "points": 10, "meta": {"x": "{{data.name}}"}},
        BINDINGS,
    )
    assert rendered == {"status": "vip-Widget", "points": 10, "meta": {"x": "{{data.name}}"}}
