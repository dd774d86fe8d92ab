try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from safenode.utils.urls import is_absolute_http_url, origin_of, with_query_params


def test_with_query_params_keeps_repeated_keys() -> None:
    url = with_query_params(
        "https://app.example/callback?tab=a&tab=b#frag", {"token": "t", "user_id": "u"}
    )

    assert url == "https://app.example/callback?tab=a&tab=b&token=t&user_id=u#frag"


def test_with_query_params_replaces_existing_values() -> None:
    url = with_query_params("https://app.example/cb?token=stale&token=older&x=1", {"token": "new"})

    assert url == "https://app.example/cb?x=1&token=new"


def test_origin_and_absolute_url_checks() -> None:
    assert origin_of("HTTPS://App.Example:8443/path?q=1") == "https://app.example:8443"
    assert is_absolute_http_url("http://localhost:5173/cb")
    assert not is_absolute_http_url("/relative/path")
    assert not is_absolute_http_url("javascript:alert(1)")
