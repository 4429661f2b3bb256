"""
HTTP gateway used by app clients to talk to the REST API.

Every call goes through :meth:`ApiClient.request`, which attaches the bearer
token, refreshes it once when the server answers 401, and retries once after
a short pause on 502/503/504. Failures surface as the same error classes the
server uses (:mod:`agrimart.errors`).
"""

from agrimart.errors import AuthError, TransientUpstreamError, error_for_status
import logging
import time
import requests

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = (502, 503, 504)
TRANSIENT_RETRY_DELAY = 0.8
REFRESH_PATH = '/auth/refresh'


class ApiClient:

    def __init__(self, base_url, session=None, access_token=None,
                 refresh_token=None, timeout=30,
                 retry_delay=TRANSIENT_RETRY_DELAY, sleep=time.sleep,
                 on_tokens=None):
        if not base_url:
            raise ValueError('base_url is required')
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.timeout = timeout
        self.retry_delay = retry_delay
        self._sleep = sleep
        # Called with the token dict whenever new tokens are stored.
        self.on_tokens = on_tokens

    # Tokens

    def set_tokens(self, tokens: dict):
        self.access_token = tokens.get('access_token')
        self.refresh_token = tokens.get('refresh_token', self.refresh_token)
        if self.on_tokens:
            self.on_tokens(tokens)

    def clear_tokens(self):
        self.access_token = None
        self.refresh_token = None

    def signin(self, number, password):
        body = self.request(
            'POST', '/auth/signin',
            json={'number': number, 'password': password},
            auth=False,
        )
        self.set_tokens(body)
        return body.get('user')

    def refresh(self) -> bool:
        """Exchange the refresh token for a new pair. False on failure."""
        if not self.refresh_token:
            return False
        try:
            body = self.request(
                'POST', REFRESH_PATH,
                json={'refresh_token': self.refresh_token},
                auth=False,
            )
        except AuthError:
            logger.info("Token refresh rejected")
            self.clear_tokens()
            return False
        self.set_tokens(body)
        return True

    # Requests

    def _send(self, method, url, json=None, params=None, auth=True):
        headers = {'Accept': 'application/json'}
        if auth and self.access_token:
            headers['Authorization'] = f'Bearer {self.access_token}'
        try:
            return self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise TransientUpstreamError(
                f'{method} {url} failed: {e}') from e

    def _send_with_retry(self, method, url, json=None, params=None,
                         auth=True):
        resp = self._send(method, url, json, params, auth)
        if resp.status_code in TRANSIENT_STATUSES:
            logger.info(
                "%s %s -> %s, retrying in %.1fs",
                method, url, resp.status_code, self.retry_delay)
            self._sleep(self.retry_delay)
            resp = self._send(method, url, json, params, auth)
        return resp

    def request(self, method, path, json=None, params=None, auth=True):
        url = f'{self.base_url}{path}'
        resp = self._send_with_retry(method, url, json, params, auth)

        if (resp.status_code == 401 and auth and path != REFRESH_PATH
                and self.refresh()):
            resp = self._send_with_retry(method, url, json, params, auth)

        return self._handle(resp)

    @staticmethod
    def _body(resp):
        content_type = resp.headers.get('Content-Type', '')
        if 'application/json' in content_type:
            try:
                return resp.json()
            except ValueError:
                return resp.text
        return resp.text

    def _handle(self, resp):
        body = self._body(resp)
        if resp.ok:
            return body

        if isinstance(body, dict) and body.get('error'):
            message = body['error']
        else:
            message = (
                str(body) if body else
                resp.reason or f'HTTP {resp.status_code}'
            )
        raise error_for_status(resp.status_code, message)

    def get(self, path, params=None):
        return self.request('GET', path, params=params)

    def post(self, path, json=None):
        return self.request('POST', path, json=json)

    def put(self, path, json=None):
        return self.request('PUT', path, json=json)

    def patch(self, path, json=None):
        return self.request('PATCH', path, json=json)

    def delete(self, path, json=None):
        return self.request('DELETE', path, json=json)
