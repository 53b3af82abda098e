import pytest

from sitegen.naming import project_hostnames, project_urls, repo_names, slugify, unique_slug


@pytest.mark.parametrize(
    ("name", "slug"),
    [
        ("Coffee2U", "coffee2u"),
        ("Coffee & Co.", "coffee-and-co"),
        ("  Joe's   Pizza!! ", "joe-s-pizza"),
        ("Café Olé", "caf-ol"),
        ("!!!", "project"),
    ],
)
def test_slugify(name, slug):
    assert slugify(name) == slug


def test_slug_length_limit():
    slug = slugify("a" * 40 + " " + "b" * 40)
    assert len(slug) <= 63
    assert not slug.endswith("-")


def test_unique_slug_keeps_label_length():
    project_id = "3f9a2c1e-0000-4000-8000-000000000000"
    assert unique_slug("coffee2u", project_id) == "coffee2u-3f9a2c1e"

    long_slug = unique_slug(slugify("a" * 70), project_id)
    assert len(long_slug) == 63
    assert long_slug.endswith("-3f9a2c1e")


def test_project_urls():
    urls = project_urls("coffee2u", "be1st.io")
    assert urls == {
        "frontend": "https://coffee2u.be1st.io",
        "backend": "https://api.coffee2u.be1st.io",
        "admin": "https://admin.coffee2u.be1st.io",
    }
    assert project_hostnames("coffee2u", "be1st.io")["backend"] == "api.coffee2u.be1st.io"


def test_repo_names():
    assert repo_names("coffee2u") == {
        "frontend": "coffee2u-frontend",
        "backend": "coffee2u-backend",
        "admin": "coffee2u-admin",
    }
