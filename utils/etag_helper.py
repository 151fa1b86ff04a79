"""
ETag Helper

Conditional GET support for JSON list endpoints: a board that polls its
backlog gets 304 Not Modified until an order or field actually changes.
"""

import hashlib
import json
from functools import wraps
from typing import Any, Callable

from flask import Response, make_response, request


def generate_etag(data: Any) -> str:
    """
    Generate a quoted ETag from JSON-serializable data.

    Keys are sorted so equal payloads always hash the same.
    """
    json_str = json.dumps(data, sort_keys=True, default=str)
    md5_hash = hashlib.md5(json_str.encode('utf-8')).hexdigest()
    return f'"{md5_hash}"'


def _not_modified(etag: str) -> Response:
    response = make_response('', 304)
    response.headers['ETag'] = etag
    response.headers['Cache-Control'] = 'no-cache'
    return response


def with_etag(f: Callable) -> Callable:
    """
    Decorator adding an ETag header to successful JSON responses.

    Returns 304 when If-None-Match matches. Error responses (any status
    other than 200) pass through untouched.

    Usage:
        @bp.route('/api/things')
        @with_etag
        @login_required
        def list_things():
            return jsonify({...})
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = make_response(f(*args, **kwargs))

        if response.status_code != 200 or not response.is_json:
            return response

        etag = generate_etag(response.get_json())
        if request.headers.get('If-None-Match') == etag:
            return _not_modified(etag)

        response.headers['ETag'] = etag
        response.headers['Cache-Control'] = 'no-cache'
        return response

    return decorated_function
