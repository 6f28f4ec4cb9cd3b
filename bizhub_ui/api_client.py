# bizhub_ui/api_client.py
import logging
import os

import requests

logger = logging.getLogger("bizhub-ui")

API_BASE = os.environ.get("API_BASE", "http://localhost:5000")
DEFAULT_TIMEOUT = 10


def safe_json(resp):
    try:
        return resp.json()
    except ValueError:
        return None


def api_request(method, path, token=None, json=None, params=None, timeout=DEFAULT_TIMEOUT, base=None):
    """Call the backend; returns the response, or None when the backend is unreachable"""
    headers = {}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    url = (base or API_BASE).rstrip("/") + path

    method = method.upper()
    if method not in ("GET", "POST", "PUT", "DELETE"):
        raise ValueError(f"Unsupported method: {method}")

    try:
        return requests.request(method, url, headers=headers, json=json, params=params, timeout=timeout)
    except requests.RequestException as e:
        logger.error(f"Request {method} {url} failed: {e}")
        return None


def error_message(resp, default="Request failed"):
    if resp is None:
        return "Backend unreachable"
    body = safe_json(resp) or {}
    return body.get("error") or body.get("msg") or f"{default} ({resp.status_code})"


def get_json(path, token, params=None, default=None):
    """GET returning the decoded body on 200, else `default`"""
    resp = api_request("GET", path, token=token, params=params)
    if resp is None or resp.status_code != 200:
        return default
    body = safe_json(resp)
    return default if body is None else body
