"""Unit tests for the home page template cache and renderer."""

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest

from pkgfront.constants import SERVER_DATA_TOKEN
from pkgfront.home import TemplateError, encode_server_data, load_template, render_home_page

STATS = {"totals": {"requests": {"all": 1234}}, "timeseries": [{"since": "2024-01-01"}]}


def _embedded_json(html: str) -> object:
    match = re.search(r"window\.serverData = (.*)</script>", html)
    assert match is not None
    return json.loads(match.group(1))


class TestLoadTemplate:

    def test_loads_index_html(self, public_dir: Path) -> None:
        template = load_template(str(public_dir))
        assert template.count(SERVER_DATA_TOKEN) == 1

    def test_missing_template(self, tmp_path: Path) -> None:
        with pytest.raises(TemplateError, match="Could not read"):
            load_template(str(tmp_path))

    def test_template_without_token(self, tmp_path: Path) -> None:
        (tmp_path / "index.html").write_text("<html></html>")
        with pytest.raises(TemplateError, match="found 0"):
            load_template(str(tmp_path))

    def test_template_with_two_tokens(self, tmp_path: Path) -> None:
        (tmp_path / "index.html").write_text(f"{SERVER_DATA_TOKEN} {SERVER_DATA_TOKEN}")
        with pytest.raises(TemplateError, match="found 2"):
            load_template(str(tmp_path))


class TestRenderHomePage:

    def test_token_replaced_with_stats_json(self, public_dir: Path) -> None:
        html = render_home_page(load_template(str(public_dir)), STATS)
        assert SERVER_DATA_TOKEN not in html
        assert _embedded_json(html) == {"cloudflareStats": STATS}

    def test_none_stats(self, public_dir: Path) -> None:
        html = render_home_page(load_template(str(public_dir)), None)
        assert _embedded_json(html) == {"cloudflareStats": None}

    def test_rendering_is_deterministic(self, public_dir: Path) -> None:
        template = load_template(str(public_dir))
        assert render_home_page(template, STATS) == render_home_page(template, STATS)

    def test_template_unchanged_by_render(self, public_dir: Path) -> None:
        template = load_template(str(public_dir))
        before = str(template)
        render_home_page(template, STATS)
        assert template == before
        assert SERVER_DATA_TOKEN in template

    def test_token_in_stats_is_not_substituted_again(self) -> None:
        html = render_home_page(f"<p>{SERVER_DATA_TOKEN}</p>", {"note": SERVER_DATA_TOKEN})
        assert html == '<p>{"cloudflareStats":{"note":"__SERVER_DATA__"}}</p>'

    def test_compact_encoding(self) -> None:
        assert encode_server_data({"a": [1, 2]}) == '{"cloudflareStats":{"a":[1,2]}}'
