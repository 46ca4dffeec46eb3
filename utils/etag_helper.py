"""
ETag Helper

Board and column reads carry an ETag derived from the response body. After
a move reports ``rebalanced: true`` a client revalidates with
``If-None-Match``; an unchanged column answers 304 without a body.
"""

import hashlib
import json
from functools import wraps
from typing import Any, Callable, Iterable, Tuple

from flask import request, Response, jsonify, make_response


def generate_etag(data: Any) -> str:
    """
    Generate a quoted ETag from JSON-serializable data.

    Keys are sorted so logically equal payloads hash the same.
    """
    json_str = json.dumps(data, sort_keys=True, default=str)
    md5_hash = hashlib.md5(json_str.encode('utf-8')).hexdigest()
    return f'"{md5_hash}"'


def compute_ordering_etag(column_id: int, ordered: Iterable[Tuple[int, int]]) -> str:
    """
    ETag over a column's ordering only: ``(task_id, position)`` pairs.
    Payload edits do not change it, any move or rebalance does.
    """
    return generate_etag({
        'column_id': column_id,
        'order': [[task_id, position] for task_id, position in ordered],
    })


def _not_modified(etag: str) -> Response:
    not_modified = make_response('', 304)
    not_modified.headers['ETag'] = etag
    not_modified.headers['Cache-Control'] = 'no-cache'
    return not_modified


def with_etag(f: Callable) -> Callable:
    """
    Decorator adding ETag support to JSON routes.

    The view may return a dict, a ``(dict, status)`` tuple or a JSON
    ``Response``. Only 200 responses are tagged; a matching
    ``If-None-Match`` turns them into 304 Not Modified.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        result = f(*args, **kwargs)

        status_code = 200
        if isinstance(result, tuple):
            body, status_code = result[0], result[1]
        else:
            body = result

        if isinstance(body, Response):
            response = body
            if status_code != 200:
                response.status_code = status_code
        elif isinstance(body, dict):
            response = make_response(jsonify(body), status_code)
        else:
            return result

        if response.status_code != 200 or not response.is_json:
            return response

        etag = generate_etag(response.get_json())
        if request.headers.get('If-None-Match') == etag:
            return _not_modified(etag)

        response.headers['ETag'] = etag
        response.headers['Cache-Control'] = 'no-cache'
        return response

    return decorated_function
