# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Pytest tests for the agent_pr_stats CLI.

The transport and the rate-limit probe are monkeypatched; no network access.
"""

import json

import pytest

from agent_pr_stats import cli
from agent_pr_stats.conftest import FakeGitHub, make_item, rate_headers
from agent_pr_stats.fetcher import TransportResponse
from agent_pr_stats.models import RateLimitSnapshot

RANGE = ["--from", "2026-01-01", "--to", "2026-01-31"]


@pytest.fixture(autouse=True)
def _no_token_discovery(monkeypatch):
    monkeypatch.setattr(cli, "resolve_token", lambda explicit=None: explicit)


def _install(monkeypatch, gh):
    monkeypatch.setattr(cli, "AiohttpSearchTransport", lambda: gh)


def test_agent_logins_for():
    logins = cli.agent_logins_for("app/my-agent")
    assert "my-agent" in logins
    assert "my-agent[bot]" in logins
    assert cli.agent_logins_for("") == cli.DEFAULT_AGENT_LOGINS


@pytest.mark.parametrize("repo", ["octo", "octo/re po", "a/b/c"])
def test_invalid_repository_exits_2(repo, tmp_path):
    assert cli._cli([repo, *RANGE, "--cache-dir", str(tmp_path)]) == cli.EXIT_INVALID_INPUT


def test_inverted_dates_exit_2(tmp_path):
    argv = ["octo/repo", "--from", "2026-02-01", "--to", "2026-01-01", "--cache-dir", str(tmp_path)]
    assert cli._cli(argv) == cli.EXIT_INVALID_INPUT


def test_rate_limit_probe(monkeypatch, capsys):
    seen = {}

    def fake_probe(token):
        seen["token"] = token
        return RateLimitSnapshot(limit=30, remaining=28, reset_at=None, used=2, resource="search")

    monkeypatch.setattr(cli, "probe_rate_limit", fake_probe)
    assert cli._cli(["--rate-limit", "--token", "abc"]) == cli.EXIT_OK
    assert seen["token"] == "abc"
    assert capsys.readouterr().out.startswith("Rate limit: 28/30 remaining")


def test_search_json_output_and_cache(monkeypatch, capsys, tmp_path):
    agent = [make_item(1, merged="2026-01-05T12:00:00Z"), make_item(2), make_item(3, state="closed")]
    everyone = agent + [make_item(10, login="human")]

    gh = FakeGitHub(agent, everyone)
    _install(monkeypatch, gh)
    argv = ["octo/repo", *RANGE, "--token", "t", "--json", "--cache-dir", str(tmp_path)]
    assert cli._cli(argv) == cli.EXIT_OK
    out = json.loads(capsys.readouterr().out)
    assert out["counts"]["total"] == 3
    assert out["all_counts"]["total"] == 4
    assert out["ratios"]["open"]["display"] == "1 / 2"
    assert out["from_cache"] is False
    assert len(gh.calls) == 4
    assert (tmp_path / cli.CACHE_FILE_DEFAULT).exists()

    # Same search again is served from disk.
    gh2 = FakeGitHub(agent, everyone)
    _install(monkeypatch, gh2)
    assert cli._cli(argv) == cli.EXIT_OK
    assert json.loads(capsys.readouterr().out)["from_cache"] is True
    assert gh2.calls == []


def test_search_text_output_without_cache(monkeypatch, capsys):
    gh = FakeGitHub([make_item(1, merged="2026-01-05T12:00:00Z")])
    _install(monkeypatch, gh)
    assert cli._cli(["octo/repo", *RANGE, "--no-cache"]) == cli.EXIT_OK
    text = capsys.readouterr().out
    assert "octo/repo  2026-01-01..2026-01-31" in text
    assert "Merge rate:  100%" in text
    assert "Rate limit: 29/30 remaining" in text


def test_search_error_exits_1(monkeypatch, tmp_path):
    gh = FakeGitHub(errors={"agentAuthored": TransportResponse(404, rate_headers(), {"message": "Not Found"})})
    _install(monkeypatch, gh)
    assert cli._cli(["octo/missing", *RANGE, "--cache-dir", str(tmp_path)]) == cli.EXIT_ERROR
