"""Client for the captcha microservice."""

from __future__ import annotations

import logging

import requests

from geph.retry import DatabaseFailed

log = logging.getLogger(__name__)


class CaptchaError(DatabaseFailed):
    """The captcha service failed to answer."""


def _is_success(resp: requests.Response) -> bool:
    return 200 <= resp.status_code < 300


class CaptchaService:
    """Generates, renders and checks captchas through an HTTP service."""

    def __init__(self, base_url: str, timeout: float = 1.0) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._session = requests.Session()

    def _get(self, path: str) -> requests.Response:
        try:
            return self._session.get(f"{self.base_url}{path}", timeout=self.timeout)
        except requests.RequestException as err:
            raise CaptchaError(str(err)) from err

    def generate(self) -> str:
        """Create a new captcha and return its identifier."""
        resp = self._get("/new")
        if not _is_success(resp):
            raise CaptchaError("captcha failed")
        return resp.text

    def verify(self, captcha_id: str, solution: str) -> bool:
        """Return whether the solution answers the captcha."""
        log.warning("verify_captcha(%s, %s, %s)", self.base_url, captcha_id, solution)
        try:
            resp = self._get(f"/solve?id={captcha_id}&soln={solution}")
        except CaptchaError:
            return False
        return _is_success(resp)

    def render_png(self, captcha_id: str) -> bytes:
        """Download the captcha image as PNG data."""
        resp = self._get(f"/img/{captcha_id}")
        if not _is_success(resp):
            raise CaptchaError("captcha failed")
        return resp.content

    def get_captcha(self) -> tuple[str, bytes]:
        """Create a captcha and return its identifier with its PNG image."""
        captcha_id = self.generate()
        return captcha_id, self.render_png(captcha_id)