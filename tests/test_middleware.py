"""Middleware tests for security headers and request ID."""

from phraseloop.middleware import API_CSP, DOCS_CSP


class TestSecurityHeadersMiddleware:
    """Tests for SecurityHeadersMiddleware."""

    def test_security_headers_present(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "no-referrer"

    def test_api_paths_get_locked_down_csp(self, client):
        response = client.get("/subtitles?videoId=abcdefghijk")

        assert response.headers["Content-Security-Policy"] == API_CSP

    def test_docs_csp_allows_swagger_ui(self, client):
        response = client.get("/docs")

        assert response.status_code == 200
        assert response.headers["Content-Security-Policy"] == DOCS_CSP
        assert "https://cdn.jsdelivr.net" in DOCS_CSP

    def test_error_responses_get_headers(self, client):
        response = client.get("/subtitles")

        assert response.status_code == 400
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_no_hsts_over_plain_http(self, client):
        response = client.get("/")

        assert "Strict-Transport-Security" not in response.headers


class TestRequestIdMiddleware:
    """Tests for RequestIdMiddleware."""

    def test_request_id_generated(self, client):
        response = client.get("/")

        # UUID4 format: xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx
        assert len(response.headers["X-Request-ID"]) == 36

    def test_request_id_from_header(self, client):
        custom_id = "custom-request-id-12345"
        response = client.get("/", headers={"X-Request-ID": custom_id})

        assert response.headers["X-Request-ID"] == custom_id

    def test_request_ids_differ(self, client):
        first = client.get("/").headers["X-Request-ID"]
        second = client.get("/").headers["X-Request-ID"]

        assert first != second
