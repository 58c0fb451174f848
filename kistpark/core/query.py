"""
List endpoint helpers: _start/_end windowing, _sort/_order ordering,
substring filters and the x-total-count header the admin client reads.
"""

from collections import namedtuple
from flask import jsonify

ListParams = namedtuple('ListParams', ['offset', 'limit', 'order_by'])


def _to_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_list_params(args, sortable, default_sort=('created_at', 'DESC'), id_column='id'):
    """Translate query args into an offset, limit and ORDER BY clause.

    `sortable` maps API field names (createdAt, seq, ...) to column names;
    an unknown _sort falls back to the default order.
    """
    offset = max(_to_int(args.get('_start'), 0), 0)
    end = _to_int(args.get('_end'))
    limit = max(end - offset, 0) if end is not None else None

    column = sortable.get(args.get('_sort') or '')
    if column:
        direction = 'DESC' if str(args.get('_order', 'asc')).lower() == 'desc' else 'ASC'
    else:
        column, direction = default_sort

    # id keeps rows with equal sort keys in a stable order
    return ListParams(offset, limit, f'{column} {direction}, {id_column} {direction}')


def like_pattern(text):
    """Case-insensitive substring pattern, used with ESCAPE '\\'"""
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def window_sql(list_params):
    """ORDER BY / LIMIT / OFFSET tail and its parameters"""
    limit = list_params.limit if list_params.limit is not None else -1
    return f' ORDER BY {list_params.order_by} LIMIT ? OFFSET ?', [limit, list_params.offset]


def paginated_response(items, total):
    response = jsonify(items)
    response.headers['x-total-count'] = str(total)
    response.headers['Access-Control-Expose-Headers'] = 'x-total-count'
    return response
