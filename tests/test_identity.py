from __future__ import annotations

from registry_authors.identity import NOREPLY_DOMAIN, github_username_from_email, identity_key


def test_github_username_from_noreply_with_numeric_prefix() -> None:
    assert github_username_from_email("12345+octocat@users.noreply.github.com") == "octocat"


def test_github_username_from_noreply_without_prefix() -> None:
    assert github_username_from_email("octocat@users.noreply.github.com") == "octocat"


def test_github_username_keeps_original_case() -> None:
    assert github_username_from_email("1+OctoCat@users.noreply.github.com") == "OctoCat"


def test_github_username_non_numeric_prefix_is_part_of_handle() -> None:
    assert github_username_from_email("abc+octocat@users.noreply.github.com") == "abc+octocat"


def test_github_username_rejects_other_addresses() -> None:
    assert github_username_from_email("octocat@github.com") is None
    assert github_username_from_email("octocat@users.noreply.github.com.evil.org") is None
    assert github_username_from_email("@users.noreply.github.com") is None
    assert github_username_from_email("1+octocat@USERS.NOREPLY.GITHUB.COM") is None
    assert github_username_from_email("") is None


def test_identity_key_prefers_username_and_lowercases() -> None:
    assert identity_key("1+OctoCat@users.noreply.github.com") == "octocat"
    assert identity_key("OctoCat@users.noreply.github.com") == "octocat"
    assert identity_key("Ann@Example.COM") == "ann@example.com"


def test_github_username_uses_noreply_domain_literally() -> None:
    assert github_username_from_email(f"42+octocat@{NOREPLY_DOMAIN}") == "octocat"
    assert github_username_from_email("octocat@usersXnoreplyXgithubXcom") is None
